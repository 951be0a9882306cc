"""Построение сетки single elimination по подтвержденным заявкам турнира."""

import logging
import random
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InsufficientEntrants, NotFound, RegenerationConflict
from app.models.ranking import PlayerRanking
from app.models.tournament import MatchStatus, Registration, RegistrationStatus, Tournament, TournamentMatch

logger = logging.getLogger(__name__)


class SeedingPolicy(str, Enum):
    RANDOM = "random"
    ELO = "elo"


@dataclass(frozen=True)
class BracketLayout:
    bracket_size: int
    rounds: int
    byes: int

    @property
    def first_round_matches(self) -> int:
        return self.bracket_size // 2

    def matches_in_round(self, round_number: int) -> int:
        return self.bracket_size // 2**round_number


def bracket_layout(entrant_count: int) -> BracketLayout:
    # Размер сетки: ближайшая степень двойки не меньше числа участников.
    if entrant_count < 2:
        raise InsufficientEntrants("Нужно минимум 2 подтвержденных участника")
    bracket_size = 1 << (entrant_count - 1).bit_length()
    return BracketLayout(
        bracket_size=bracket_size,
        rounds=bracket_size.bit_length() - 1,
        byes=bracket_size - entrant_count,
    )


def order_entrants(
    entrant_ids: list[int],
    seeding: SeedingPolicy = SeedingPolicy.RANDOM,
    seed: int | None = None,
    ratings: dict[int, int] | None = None,
) -> list[int]:
    """Возвращает порядок участников для first_round_pairs.

    random: перемешивание, воспроизводимое при заданном seed.
    elo: список посева от сильнейшего к слабейшему (равные рейтинги в порядке заявок).
    """
    if seeding == SeedingPolicy.RANDOM:
        shuffled = list(entrant_ids)
        random.Random(seed).shuffle(shuffled)
        return shuffled

    ratings = ratings or {}
    position = {user_id: index for index, user_id in enumerate(entrant_ids)}
    return sorted(
        entrant_ids,
        key=lambda user_id: (-ratings.get(user_id, settings.elo_base_rating), position[user_id]),
    )


def seed_positions(bracket_size: int) -> list[int]:
    """Номера посева по слотам первого раунда: для 8 это [1, 8, 4, 5, 2, 7, 3, 6].

    Первый и второй посев попадают в разные половины и встречаются только в финале.
    """
    positions = [1]
    while len(positions) < bracket_size:
        total = len(positions) * 2 + 1
        positions = [slot for seed_number in positions for slot in (seed_number, total - seed_number)]
    return positions


def seeded_first_round(ranked: list[int], bracket_size: int) -> list[tuple[int, int | None]]:
    # Посевы с номером больше N отсутствуют: их соперники, старшие посевы, получают bye.
    slots = [ranked[number - 1] if number <= len(ranked) else None for number in seed_positions(bracket_size)]
    return [(slots[index], slots[index + 1]) for index in range(0, bracket_size, 2)]


def pair_first_round(entrants: list[int], bracket_size: int) -> list[tuple[int, int | None]]:
    # Первые (N - size/2) матчей полные, в остальных один участник и пустой второй слот.
    half = bracket_size // 2
    full_matches = len(entrants) - half
    pairs: list[tuple[int, int | None]] = []
    index = 0
    for match_index in range(half):
        if match_index < full_matches:
            pairs.append((entrants[index], entrants[index + 1]))
            index += 2
        else:
            pairs.append((entrants[index], None))
            index += 1
    return pairs


def first_round_pairs(
    ordered_entrants: list[int],
    bracket_size: int,
    seeding: SeedingPolicy = SeedingPolicy.RANDOM,
) -> list[tuple[int, int | None]]:
    if seeding == SeedingPolicy.ELO:
        return seeded_first_round(ordered_entrants, bracket_size)
    return pair_first_round(ordered_entrants, bracket_size)


def build_bracket_matches(
    tournament_id: int,
    ordered_entrants: list[int],
    seeding: SeedingPolicy = SeedingPolicy.RANDOM,
) -> list[TournamentMatch]:
    """Создает матчи первого раунда и пустые матчи всех следующих раундов."""
    layout = bracket_layout(len(ordered_entrants))
    matches: list[TournamentMatch] = []
    for match_number, (participant1, participant2) in enumerate(
        first_round_pairs(ordered_entrants, layout.bracket_size, seeding), start=1
    ):
        matches.append(
            TournamentMatch(
                tournament_id=tournament_id,
                round=1,
                match_number=match_number,
                participant1_id=participant1,
                participant2_id=participant2,
                status=MatchStatus.PENDING.value,
            )
        )

    for round_number in range(2, layout.rounds + 1):
        for match_number in range(1, layout.matches_in_round(round_number) + 1):
            matches.append(
                TournamentMatch(
                    tournament_id=tournament_id,
                    round=round_number,
                    match_number=match_number,
                    status=MatchStatus.PENDING.value,
                )
            )
    return matches


async def get_confirmed_entrants(db: AsyncSession, tournament_id: int) -> list[int]:
    rows = await db.scalars(
        select(Registration.user_id)
        .where(
            Registration.tournament_id == tournament_id,
            Registration.status == RegistrationStatus.CONFIRMED.value,
        )
        .order_by(Registration.registered_at, Registration.id)
    )
    return list(rows.all())


async def _lock_existing_matches(db: AsyncSession, tournament_id: int) -> list[tuple[int, str]]:
    # Блокируем текущие матчи турнира до конца транзакции перегенерации.
    rows = await db.execute(
        select(TournamentMatch.id, TournamentMatch.status)
        .where(TournamentMatch.tournament_id == tournament_id)
        .with_for_update()
    )
    return [(match_id, status) for match_id, status in rows.all()]


async def _clear_matches(db: AsyncSession, tournament_id: int, expected: int, force: bool) -> None:
    """Удаляет матчи турнира; без force завершенные матчи не удаляются никогда.

    Если удалено не столько строк, сколько было заблокировано, значит матч
    завершили параллельно, и перегенерация отклоняется.
    """
    statement = delete(TournamentMatch).where(TournamentMatch.tournament_id == tournament_id)
    if not force:
        statement = statement.where(TournamentMatch.status != MatchStatus.COMPLETED.value)
    result = await db.execute(statement)
    if not force and result.rowcount != expected:
        await db.rollback()
        raise RegenerationConflict("Сетка изменилась во время перегенерации: матч был завершен параллельно")


async def generate_bracket(
    db: AsyncSession,
    tournament_id: int,
    seeding: SeedingPolicy | str = SeedingPolicy.RANDOM,
    seed: int | None = None,
    force: bool = False,
) -> list[TournamentMatch]:
    """Пересобирает сетку турнира с нуля.

    Все прежние матчи удаляются. Если среди них есть завершенные, без force=True
    перегенерация отклоняется, чтобы не потерять результаты.
    """
    seeding = SeedingPolicy(seeding)
    tournament = await db.scalar(select(Tournament).where(Tournament.id == tournament_id))
    if not tournament:
        raise NotFound("Tournament not found")

    entrants = await get_confirmed_entrants(db, tournament_id)
    layout = bracket_layout(len(entrants))

    existing = await _lock_existing_matches(db, tournament_id)
    completed = sum(1 for _match_id, status in existing if status == MatchStatus.COMPLETED.value)
    if completed:
        if not force:
            await db.rollback()
            raise RegenerationConflict(
                f"В турнире уже есть завершенные матчи ({completed}), перегенерация сотрет результаты"
            )
        logger.warning(
            "forced bracket regeneration for tournament %s discards %s completed matches", tournament_id, completed
        )

    ratings: dict[int, int] = {}
    if seeding == SeedingPolicy.ELO:
        rows = await db.execute(
            select(PlayerRanking.user_id, PlayerRanking.elo_rating).where(
                PlayerRanking.game_id == tournament.game_id,
                PlayerRanking.user_id.in_(entrants),
            )
        )
        ratings = {user_id: elo for user_id, elo in rows.all()}

    ordered = order_entrants(entrants, seeding=seeding, seed=seed, ratings=ratings)
    await _clear_matches(db, tournament_id, expected=len(existing), force=force)
    matches = build_bracket_matches(tournament_id, ordered, seeding=seeding)
    db.add_all(matches)
    await db.commit()

    logger.info(
        "bracket generated for tournament %s: %s entrants, size %s, %s rounds, %s byes, seeding=%s seed=%s",
        tournament_id,
        len(entrants),
        layout.bracket_size,
        layout.rounds,
        layout.byes,
        seeding.value,
        seed,
    )
    return matches
