"""In-memory SQLite для тестов, которым нужна настоящая транзакционная сессия."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import create_session_factory
from app.models.ranking import EloHistoryEntry, PlayerRanking
from app.models.tournament import Registration, RegistrationStatus, Tournament, TournamentMatch


async def create_memory_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    # StaticPool: все сессии видят одну и ту же in-memory базу.
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, create_session_factory(engine)


async def add_tournament(
    db: AsyncSession,
    user_ids: list[int],
    game_id: int = 1,
    status: str = RegistrationStatus.CONFIRMED.value,
) -> Tournament:
    tournament = Tournament(name="Test Cup", game_id=game_id, max_participants=64)
    db.add(tournament)
    await db.flush()
    for user_id in user_ids:
        db.add(Registration(tournament_id=tournament.id, user_id=user_id, status=status))
    await db.commit()
    return tournament


async def add_ranking(db: AsyncSession, user_id: int, elo: int, game_id: int = 1) -> PlayerRanking:
    ranking = PlayerRanking(
        user_id=user_id,
        game_id=game_id,
        elo_rating=elo,
        peak_elo=elo,
        wins=0,
        losses=0,
        matches_played=0,
        win_streak=0,
        best_win_streak=0,
    )
    db.add(ranking)
    await db.commit()
    return ranking


async def reload_match(db: AsyncSession, match_id: int) -> TournamentMatch:
    return await db.scalar(
        select(TournamentMatch).where(TournamentMatch.id == match_id).execution_options(populate_existing=True)
    )


async def find_match(db: AsyncSession, tournament_id: int, round_number: int, match_number: int) -> TournamentMatch:
    return await db.scalar(
        select(TournamentMatch)
        .where(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.round == round_number,
            TournamentMatch.match_number == match_number,
        )
        .execution_options(populate_existing=True)
    )


async def reload_ranking(db: AsyncSession, user_id: int, game_id: int = 1) -> PlayerRanking | None:
    return await db.scalar(
        select(PlayerRanking)
        .where(PlayerRanking.user_id == user_id, PlayerRanking.game_id == game_id)
        .execution_options(populate_existing=True)
    )


async def history_count(db: AsyncSession, match_id: int) -> int:
    return await db.scalar(select(func.count(EloHistoryEntry.id)).where(EloHistoryEntry.match_id == match_id))


def scores_for(match: TournamentMatch, winner_id: int) -> tuple[int, int]:
    # Счет, при котором побеждает winner_id.
    return (2, 1) if match.participant1_id == winner_id else (1, 2)
