"""Рейтинг Эло: расчет дельты и атомарное применение результата матча к двум игрокам."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import MatchNotReady, RatingApplyFailure
from app.models.ranking import EloHistoryEntry, PlayerRanking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RatingChange:
    match_id: int
    game_id: int
    winner_id: int
    loser_id: int
    winner_before: int
    winner_after: int
    loser_before: int
    loser_after: int

    @property
    def winner_delta(self) -> int:
        return self.winner_after - self.winner_before

    @property
    def loser_delta(self) -> int:
        return self.loser_after - self.loser_before


def round_half_up(value: float) -> int:
    # Округление половины вверх: 16.5 -> 17, -16.5 -> -16.
    return math.floor(value + 0.5)


def expected_score(rating: float, opponent_rating: float, scale: float | None = None) -> float:
    """Ожидаемый результат Эло для одной стороны."""
    scale = settings.elo_scale if scale is None else scale
    return 1.0 / (1.0 + 10.0 ** ((opponent_rating - rating) / scale))


def rating_delta(winner_rating: int, loser_rating: int, k_factor: int | None = None) -> int:
    # Проигравший теряет ровно столько же: обмен всегда с нулевой суммой.
    k_factor = settings.elo_k_factor if k_factor is None else k_factor
    return round_half_up(k_factor * (1.0 - expected_score(winner_rating, loser_rating)))


def new_ranking(user_id: int, game_id: int) -> PlayerRanking:
    base = settings.elo_base_rating
    return PlayerRanking(
        user_id=user_id,
        game_id=game_id,
        elo_rating=base,
        peak_elo=base,
        wins=0,
        losses=0,
        matches_played=0,
        win_streak=0,
        best_win_streak=0,
    )


def apply_outcome(winner: PlayerRanking, loser: PlayerRanking, delta: int) -> None:
    """Меняет рейтинг, пик, серии и счетчики обоих игроков на месте."""
    winner.elo_rating += delta
    loser.elo_rating -= delta
    winner.peak_elo = max(winner.peak_elo, winner.elo_rating)
    loser.peak_elo = max(loser.peak_elo, loser.elo_rating)

    winner.win_streak += 1
    winner.best_win_streak = max(winner.best_win_streak, winner.win_streak)
    loser.win_streak = 0

    winner.wins += 1
    loser.losses += 1
    winner.matches_played += 1
    loser.matches_played += 1


async def get_ranking(db: AsyncSession, user_id: int, game_id: int) -> PlayerRanking | None:
    return await db.scalar(
        select(PlayerRanking).where(PlayerRanking.user_id == user_id, PlayerRanking.game_id == game_id)
    )


async def _lock_ranking(db: AsyncSession, user_id: int, game_id: int) -> PlayerRanking:
    # Строка (игрок, игра) блокируется до конца транзакции; новая создается лениво.
    ranking = await db.scalar(
        select(PlayerRanking)
        .where(PlayerRanking.user_id == user_id, PlayerRanking.game_id == game_id)
        .with_for_update()
    )
    if ranking is None:
        ranking = new_ranking(user_id, game_id)
        db.add(ranking)
        await db.flush()
    return ranking


async def is_rating_applied(db: AsyncSession, match_id: int) -> bool:
    applied = await db.scalar(select(EloHistoryEntry.id).where(EloHistoryEntry.match_id == match_id).limit(1))
    return applied is not None


async def apply_match_result(
    db: AsyncSession,
    match_id: int,
    winner_id: int,
    loser_id: int,
    game_id: int,
    now: datetime | None = None,
) -> RatingChange | None:
    """Применяет результат матча к рейтингам внутри транзакции вызывающего.

    Повторный вызов с тем же match_id ничего не меняет и возвращает None.
    Коммит делает вызывающий; любая ошибка хранилища превращается в RatingApplyFailure.
    """
    if winner_id == loser_id:
        raise MatchNotReady("Победитель и проигравший должны быть разными игроками")
    now = now or datetime.utcnow()

    try:
        if await is_rating_applied(db, match_id):
            logger.info("rating for match %s already applied, skipping", match_id)
            return None

        # Блокируем строки по возрастанию user_id, чтобы параллельные матчи не ловили deadlock.
        rankings: dict[int, PlayerRanking] = {}
        for user_id in sorted((winner_id, loser_id)):
            rankings[user_id] = await _lock_ranking(db, user_id, game_id)
        winner = rankings[winner_id]
        loser = rankings[loser_id]

        winner_before = winner.elo_rating
        loser_before = loser.elo_rating
        delta = rating_delta(winner_before, loser_before)
        apply_outcome(winner, loser, delta)

        for ranking, before in ((winner, winner_before), (loser, loser_before)):
            db.add(
                EloHistoryEntry(
                    match_id=match_id,
                    user_id=ranking.user_id,
                    game_id=game_id,
                    elo_before=before,
                    elo_after=ranking.elo_rating,
                    elo_change=ranking.elo_rating - before,
                    created_at=now,
                )
            )
        await db.flush()
    except SQLAlchemyError as exc:
        raise RatingApplyFailure(f"Не удалось применить рейтинг для матча {match_id}") from exc

    logger.info(
        "match %s rating applied: winner %s %s->%s, loser %s %s->%s",
        match_id,
        winner_id,
        winner_before,
        winner.elo_rating,
        loser_id,
        loser_before,
        loser.elo_rating,
    )
    return RatingChange(
        match_id=match_id,
        game_id=game_id,
        winner_id=winner_id,
        loser_id=loser_id,
        winner_before=winner_before,
        winner_after=winner.elo_rating,
        loser_before=loser_before,
        loser_after=loser.elo_rating,
    )
