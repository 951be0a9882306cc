"""Прогрессия сетки: фиксация результата матча, рейтинг и продвижение победителя."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    BracketSlotConflict,
    InvalidScore,
    InvalidStatusTransition,
    MatchNotReady,
    NotFound,
    RatingApplyFailure,
    TournamentError,
)
from app.models.tournament import MatchStatus, Tournament, TournamentMatch
from app.services.achievements import sync_achievements
from app.services.events import DomainEvent, EventKind, EventPublisher, default_publisher
from app.services.rank import tier_changed, tier_of
from app.services.rating import RatingChange, apply_match_result
from app.services.standings import find_overtaken, leaderboard

logger = logging.getLogger(__name__)

# Административный путь; в completed попадают только через запись результата.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    MatchStatus.PENDING.value: {MatchStatus.IN_PROGRESS.value},
    MatchStatus.IN_PROGRESS.value: {MatchStatus.DISPUTED.value, MatchStatus.PENDING.value},
    MatchStatus.DISPUTED.value: {MatchStatus.IN_PROGRESS.value},
}


@dataclass(frozen=True)
class PropagationTarget:
    round: int
    match_number: int
    slot: str


@dataclass
class MatchOutcome:
    match: TournamentMatch
    rating: RatingChange | None
    tournament_completed: bool = False
    events: list[DomainEvent] = field(default_factory=list)


def validate_scores(participant1_score: int, participant2_score: int) -> None:
    if participant1_score < 0 or participant2_score < 0:
        raise InvalidScore("Счет не может быть отрицательным")
    if participant1_score == participant2_score:
        raise InvalidScore("Ничья недопустима: победитель должен быть определен до записи результата")


def ensure_ready(match: TournamentMatch) -> None:
    if match.status == MatchStatus.COMPLETED.value:
        raise MatchNotReady("Матч уже завершен")
    if match.participant1_id is None or match.participant2_id is None:
        raise MatchNotReady("В матче не хватает участника")


def pick_winner(match: TournamentMatch, participant1_score: int, participant2_score: int) -> tuple[int, int]:
    # Побеждает участник со строго большим счетом.
    validate_scores(participant1_score, participant2_score)
    ensure_ready(match)
    if participant1_score > participant2_score:
        return match.participant1_id, match.participant2_id
    return match.participant2_id, match.participant1_id


def propagation_target(round_number: int, match_number: int) -> PropagationTarget:
    # Нечетный матч кормит первый слот следующего, четный кормит второй.
    return PropagationTarget(
        round=round_number + 1,
        match_number=(match_number + 1) // 2,
        slot="participant1_id" if match_number % 2 == 1 else "participant2_id",
    )


async def get_tournament_matches(db: AsyncSession, tournament_id: int) -> list[TournamentMatch]:
    rows = await db.scalars(
        select(TournamentMatch)
        .where(TournamentMatch.tournament_id == tournament_id)
        .order_by(TournamentMatch.round, TournamentMatch.match_number)
    )
    return list(rows.all())


async def _get_match(db: AsyncSession, match_id: int) -> TournamentMatch:
    match = await db.scalar(
        select(TournamentMatch)
        .where(TournamentMatch.id == match_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    if not match:
        raise NotFound("Match not found")
    return match


async def _mark_completed(
    db: AsyncSession,
    match: TournamentMatch,
    winner_id: int,
    participant1_score: int | None,
    participant2_score: int | None,
    now: datetime,
) -> None:
    # Условный апдейт: из двух параллельных запросов завершить матч сможет только один.
    result = await db.execute(
        update(TournamentMatch)
        .where(TournamentMatch.id == match.id, TournamentMatch.status != MatchStatus.COMPLETED.value)
        .values(
            status=MatchStatus.COMPLETED.value,
            winner_id=winner_id,
            participant1_score=participant1_score,
            participant2_score=participant2_score,
            completed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise MatchNotReady("Матч уже завершен")
    await db.refresh(match)


async def _propagate_winner(db: AsyncSession, match: TournamentMatch, winner_id: int) -> TournamentMatch | None:
    """Ставит победителя в слот матча следующего раунда; без целевого матча ничего не делает."""
    target = propagation_target(match.round, match.match_number)
    slot = getattr(TournamentMatch, target.slot)
    result = await db.execute(
        update(TournamentMatch)
        .where(
            TournamentMatch.tournament_id == match.tournament_id,
            TournamentMatch.round == target.round,
            TournamentMatch.match_number == target.match_number,
            slot.is_(None),
        )
        .values({target.slot: winner_id})
        .execution_options(synchronize_session=False)
    )
    next_match = await db.scalar(
        select(TournamentMatch)
        .where(
            TournamentMatch.tournament_id == match.tournament_id,
            TournamentMatch.round == target.round,
            TournamentMatch.match_number == target.match_number,
        )
        .execution_options(populate_existing=True)
    )
    if next_match is None:
        return None

    occupant = getattr(next_match, target.slot)
    if result.rowcount == 0 and occupant != winner_id:
        raise BracketSlotConflict(
            f"Слот {target.slot} матча {next_match.id} уже занят участником {occupant}"
        )
    return next_match


async def _is_final_round(db: AsyncSession, match: TournamentMatch) -> bool:
    last_round = await db.scalar(
        select(func.max(TournamentMatch.round)).where(TournamentMatch.tournament_id == match.tournament_id)
    )
    return match.round == last_round


async def _collect_events(
    db: AsyncSession,
    match: TournamentMatch,
    rating: RatingChange | None,
    tournament_completed: bool,
    now: datetime,
    walkover: bool = False,
) -> list[DomainEvent]:
    events = [
        DomainEvent(
            EventKind.MATCH_COMPLETED,
            {
                "tournament_id": match.tournament_id,
                "match_id": match.id,
                "round": match.round,
                "winner_id": match.winner_id,
                "walkover": walkover,
            },
        )
    ]

    if rating is not None:
        for user_id, before, after in (
            (rating.winner_id, rating.winner_before, rating.winner_after),
            (rating.loser_id, rating.loser_before, rating.loser_after),
        ):
            if tier_changed(before, after):
                events.append(
                    DomainEvent(
                        EventKind.RANK_TIER_CHANGED,
                        {
                            "user_id": user_id,
                            "game_id": rating.game_id,
                            "from_tier": tier_of(before),
                            "to_tier": tier_of(after),
                            "elo": after,
                        },
                    )
                )

        board = await leaderboard(db, rating.game_id)
        for rival in find_overtaken(board, rating.winner_id, rating.winner_before, rating.winner_after):
            events.append(
                DomainEvent(
                    EventKind.RIVAL_OVERTAKEN,
                    {
                        "user_id": rating.winner_id,
                        "rival_id": rival.user_id,
                        "game_id": rating.game_id,
                        "match_id": match.id,
                    },
                )
            )

        for user_id in (rating.winner_id, rating.loser_id):
            for achievement_id in await sync_achievements(db, user_id, now):
                events.append(
                    DomainEvent(EventKind.ACHIEVEMENT_UNLOCKED, {"user_id": user_id, "achievement_id": achievement_id})
                )

    if tournament_completed:
        events.append(
            DomainEvent(
                EventKind.TOURNAMENT_COMPLETED,
                {"tournament_id": match.tournament_id, "champion_id": match.winner_id},
            )
        )
    return events


async def _record_result_once(
    db: AsyncSession,
    match_id: int,
    participant1_score: int,
    participant2_score: int,
    now: datetime,
) -> MatchOutcome:
    match = await _get_match(db, match_id)
    winner_id, loser_id = pick_winner(match, participant1_score, participant2_score)
    tournament = await db.scalar(select(Tournament).where(Tournament.id == match.tournament_id))
    if not tournament:
        raise NotFound("Tournament not found")

    await _mark_completed(db, match, winner_id, participant1_score, participant2_score, now)
    rating = await apply_match_result(db, match.id, winner_id, loser_id, tournament.game_id, now=now)
    next_match = await _propagate_winner(db, match, winner_id)
    tournament_completed = next_match is None and await _is_final_round(db, match)
    events = await _collect_events(db, match, rating, tournament_completed, now)
    return MatchOutcome(match=match, rating=rating, tournament_completed=tournament_completed, events=events)


async def record_result(
    db: AsyncSession,
    match_id: int,
    participant1_score: int,
    participant2_score: int,
    publisher: EventPublisher | None = None,
    now: datetime | None = None,
) -> MatchOutcome:
    """Записывает результат матча одной транзакцией: статус, рейтинг, продвижение.

    Либо коммитится всё, либо матч остается незавершенным. Сбой рейтинга
    повторяется с тем же match_id; повторная запись завершенного матча отклоняется.
    События публикуются только после коммита.
    """
    validate_scores(participant1_score, participant2_score)
    publisher = publisher or default_publisher
    max_attempts = max(1, settings.rating_apply_max_attempts)

    for attempt in range(1, max_attempts + 1):
        try:
            outcome = await _record_result_once(db, match_id, participant1_score, participant2_score, now or datetime.utcnow())
            await db.commit()
        except TournamentError as exc:
            await db.rollback()
            if not isinstance(exc, RatingApplyFailure) or attempt == max_attempts:
                raise
            logger.warning("rating apply failed for match %s (attempt %s/%s), retrying", match_id, attempt, max_attempts)
            continue
        except SQLAlchemyError as exc:
            await db.rollback()
            if attempt == max_attempts:
                raise RatingApplyFailure(f"Не удалось записать результат матча {match_id}") from exc
            logger.warning(
                "storage error on match %s (attempt %s/%s), retrying: %s", match_id, attempt, max_attempts, exc
            )
            continue

        logger.info(
            "match %s completed: winner %s, score %s:%s",
            match_id,
            outcome.match.winner_id,
            participant1_score,
            participant2_score,
        )
        if outcome.tournament_completed:
            logger.info("tournament %s completed", outcome.match.tournament_id)
        await publisher.publish(outcome.events)
        return outcome

    raise RatingApplyFailure(f"Не удалось записать результат матча {match_id}")


async def resolve_bye(
    db: AsyncSession,
    match_id: int,
    publisher: EventPublisher | None = None,
    now: datetime | None = None,
) -> MatchOutcome:
    """Ручное техническое прохождение: участник bye-матча первого раунда проходит дальше без рейтинга."""
    publisher = publisher or default_publisher
    now = now or datetime.utcnow()
    try:
        match = await _get_match(db, match_id)
        if match.status == MatchStatus.COMPLETED.value:
            raise MatchNotReady("Матч уже завершен")
        if match.round != 1 or match.participant1_id is None or match.participant2_id is not None:
            raise MatchNotReady("Техническая победа возможна только в bye-матче первого раунда")

        await _mark_completed(db, match, match.participant1_id, None, None, now)
        next_match = await _propagate_winner(db, match, match.participant1_id)
        tournament_completed = next_match is None and await _is_final_round(db, match)
        events = await _collect_events(db, match, None, tournament_completed, now, walkover=True)
        await db.commit()
    except TournamentError:
        await db.rollback()
        raise

    logger.info("bye resolved for match %s: %s advances", match_id, match.winner_id)
    await publisher.publish(events)
    return MatchOutcome(match=match, rating=None, tournament_completed=tournament_completed, events=events)


async def set_match_status(db: AsyncSession, match_id: int, status: MatchStatus | str) -> TournamentMatch:
    # Ручные статусы (in_progress / disputed) без влияния на рейтинг.
    try:
        status = MatchStatus(status)
    except ValueError:
        raise InvalidStatusTransition(f"Неизвестный статус матча: {status}") from None
    if status == MatchStatus.COMPLETED:
        raise InvalidStatusTransition("Завершить матч можно только записью результата")

    match = await _get_match(db, match_id)
    if status.value not in ALLOWED_TRANSITIONS.get(match.status, set()):
        raise InvalidStatusTransition(f"Переход {match.status} -> {status.value} запрещен")
    match.status = status.value
    await db.commit()
    logger.info("match %s status set to %s", match_id, status.value)
    return match
