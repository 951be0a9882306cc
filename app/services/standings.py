"""Позиция в таблице лидеров, перцентиль, обгоны соперников и суточные изменения."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models.achievement import OvertakeAcknowledgement
from app.models.ranking import EloHistoryEntry, PlayerRanking
from app.services.rank import tier_of
from app.services.rating import round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Standing:
    user_id: int
    game_id: int
    position: int
    total: int
    percentile: int
    elo_rating: int
    tier: str


@dataclass(frozen=True)
class Overtake:
    user_id: int
    rival_id: int
    rival_elo: int
    game_id: int
    match_id: int
    elo_before: int
    elo_after: int
    new_position: int | None


@dataclass(frozen=True)
class Rival:
    user_id: int
    elo_rating: int
    elo_gap: int
    position: int


@dataclass(frozen=True)
class RatingMovement:
    user_id: int
    total_change: int


@dataclass(frozen=True)
class LeaderboardRow:
    position: int
    user_id: int
    elo_rating: int
    tier: str
    wins: int
    losses: int
    matches_played: int
    win_streak: int


def calculate_percentile(position: int, total: int) -> int:
    # Доля игроков, которых опережает игрок; единственный игрок получает 0.
    if total <= 0 or not 1 <= position <= total:
        raise ValueError("Позиция должна быть в диапазоне 1..total")
    return round_half_up((total - position) / total * 100)


def find_position(board: list[PlayerRanking], user_id: int) -> int | None:
    for index, ranking in enumerate(board, start=1):
        if ranking.user_id == user_id:
            return index
    return None


def find_overtaken(
    board: list[PlayerRanking],
    user_id: int,
    elo_before: int,
    elo_after: int,
) -> list[PlayerRanking]:
    """Соперники, чей рейтинг строго между рейтингом игрока до и после изменения.

    Это эвристика: она не отличает реальный обгон от соперника, который уже сидел в этом диапазоне.
    """
    return [
        ranking
        for ranking in board
        if ranking.user_id != user_id and elo_before < ranking.elo_rating < elo_after
    ]


async def leaderboard(db: AsyncSession, game_id: int, limit: int | None = None) -> list[PlayerRanking]:
    # При равном рейтинге выше тот, чья строка создана раньше.
    statement = (
        select(PlayerRanking)
        .where(PlayerRanking.game_id == game_id)
        .order_by(PlayerRanking.elo_rating.desc(), PlayerRanking.id)
    )
    if limit is not None:
        statement = statement.limit(limit)
    rows = await db.scalars(statement)
    return list(rows.all())


async def leaderboard_page(db: AsyncSession, game_id: int, limit: int = 100) -> list[LeaderboardRow]:
    # Верх таблицы лидеров игры с тиром на каждую строку.
    board = await leaderboard(db, game_id, limit=max(limit, 0))
    return [
        LeaderboardRow(
            position=position,
            user_id=ranking.user_id,
            elo_rating=ranking.elo_rating,
            tier=tier_of(ranking.elo_rating),
            wins=ranking.wins,
            losses=ranking.losses,
            matches_played=ranking.matches_played,
            win_streak=ranking.win_streak,
        )
        for position, ranking in enumerate(board, start=1)
    ]


async def elo_history(
    db: AsyncSession,
    user_id: int,
    game_id: int | None = None,
    limit: int = 20,
) -> list[EloHistoryEntry]:
    """Последние изменения рейтинга игрока для графика, от новых к старым."""
    statement = select(EloHistoryEntry).where(EloHistoryEntry.user_id == user_id)
    if game_id is not None:
        statement = statement.where(EloHistoryEntry.game_id == game_id)
    rows = await db.scalars(
        statement.order_by(EloHistoryEntry.created_at.desc(), EloHistoryEntry.id.desc()).limit(limit)
    )
    return list(rows.all())


async def get_standing(db: AsyncSession, user_id: int, game_id: int) -> Standing | None:
    board = await leaderboard(db, game_id)
    position = find_position(board, user_id)
    if position is None:
        return None
    ranking = board[position - 1]
    return Standing(
        user_id=user_id,
        game_id=game_id,
        position=position,
        total=len(board),
        percentile=calculate_percentile(position, len(board)),
        elo_rating=ranking.elo_rating,
        tier=tier_of(ranking.elo_rating),
    )


async def detect_overtakes(
    db: AsyncSession,
    user_id: int,
    game_id: int,
    window_minutes: int | None = None,
    now: datetime | None = None,
    limit: int = 5,
) -> list[Overtake]:
    """Ищет соперников, обогнанных последним положительным изменением рейтинга в окне."""
    window_minutes = settings.overtake_window_minutes if window_minutes is None else window_minutes
    since = (now or datetime.utcnow()) - timedelta(minutes=window_minutes)
    latest = await db.scalar(
        select(EloHistoryEntry)
        .where(
            EloHistoryEntry.user_id == user_id,
            EloHistoryEntry.game_id == game_id,
            EloHistoryEntry.elo_change > 0,
            EloHistoryEntry.created_at >= since,
        )
        .order_by(EloHistoryEntry.created_at.desc(), EloHistoryEntry.id.desc())
        .limit(1)
    )
    if latest is None:
        return []

    acknowledged = set(
        (
            await db.scalars(
                select(OvertakeAcknowledgement.rival_id).where(
                    OvertakeAcknowledgement.user_id == user_id,
                    OvertakeAcknowledgement.match_id == latest.match_id,
                )
            )
        ).all()
    )
    board = await leaderboard(db, game_id)
    position = find_position(board, user_id)
    rivals = [
        ranking
        for ranking in find_overtaken(board, user_id, latest.elo_before, latest.elo_after)
        if ranking.user_id not in acknowledged
    ]
    return [
        Overtake(
            user_id=user_id,
            rival_id=ranking.user_id,
            rival_elo=ranking.elo_rating,
            game_id=game_id,
            match_id=latest.match_id,
            elo_before=latest.elo_before,
            elo_after=latest.elo_after,
            new_position=position,
        )
        for ranking in rivals[:limit]
    ]


async def acknowledge_overtake(db: AsyncSession, user_id: int, rival_id: int, match_id: int) -> bool:
    # Серверный флаг «обгон уже показан»; повторный вызов ничего не добавляет.
    existing = await db.scalar(
        select(OvertakeAcknowledgement.id).where(
            OvertakeAcknowledgement.user_id == user_id,
            OvertakeAcknowledgement.rival_id == rival_id,
            OvertakeAcknowledgement.match_id == match_id,
        )
    )
    if existing is not None:
        return False
    db.add(OvertakeAcknowledgement(user_id=user_id, rival_id=rival_id, match_id=match_id))
    try:
        await db.commit()
    except IntegrityError:
        # Параллельный вызов успел записать тот же флаг.
        await db.rollback()
        logger.info("overtake %s -> %s for match %s already acknowledged", user_id, rival_id, match_id)
        return False
    return True


async def next_rival(db: AsyncSession, user_id: int, game_id: int) -> Rival | None:
    board = await leaderboard(db, game_id)
    position = find_position(board, user_id)
    if position is None or position == 1:
        return None
    rival = board[position - 2]
    return Rival(
        user_id=rival.user_id,
        elo_rating=rival.elo_rating,
        elo_gap=rival.elo_rating - board[position - 1].elo_rating,
        position=position - 1,
    )


async def daily_changes(
    db: AsyncSession,
    game_id: int,
    now: datetime | None = None,
    hours: int | None = None,
    limit: int = 5,
) -> tuple[list[RatingMovement], list[RatingMovement]]:
    """Лучшие и худшие суммарные изменения рейтинга за окно (по умолчанию сутки)."""
    hours = settings.daily_changes_hours if hours is None else hours
    since = (now or datetime.utcnow()) - timedelta(hours=hours)
    rows = await db.execute(
        select(EloHistoryEntry.user_id, func.sum(EloHistoryEntry.elo_change))
        .where(EloHistoryEntry.game_id == game_id, EloHistoryEntry.created_at >= since)
        .group_by(EloHistoryEntry.user_id)
    )
    movements = [RatingMovement(user_id=user_id, total_change=int(total)) for user_id, total in rows.all()]
    gainers = sorted((m for m in movements if m.total_change > 0), key=lambda m: (-m.total_change, m.user_id))
    losers = sorted((m for m in movements if m.total_change < 0), key=lambda m: (m.total_change, m.user_id))
    return gainers[:limit], losers[:limit]
