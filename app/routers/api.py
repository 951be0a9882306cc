from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound
from app.db.session import get_db
from app.services.achievements import ACHIEVEMENTS_BY_ID, get_player_stats, get_unlocked, locked_achievements
from app.services.bracket import SeedingPolicy, generate_bracket
from app.services.rank import tier_of, tier_progress
from app.services.standings import (
    acknowledge_overtake,
    daily_changes,
    detect_overtakes,
    elo_history,
    get_standing,
    leaderboard_page,
    next_rival,
)
from app.services.tournament import (
    MatchOutcome,
    get_tournament_matches,
    record_result,
    resolve_bye,
    set_match_status,
)

router = APIRouter(prefix="/api")


class MatchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    round: int
    match_number: int
    participant1_id: int | None
    participant2_id: int | None
    winner_id: int | None
    participant1_score: int | None
    participant2_score: int | None
    status: str
    completed_at: datetime | None


class EloHistoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_id: int
    game_id: int
    elo_before: int
    elo_after: int
    elo_change: int
    created_at: datetime


class BracketRequest(BaseModel):
    seeding: SeedingPolicy = SeedingPolicy.RANDOM
    seed: int | None = None
    force: bool = False


class ResultRequest(BaseModel):
    participant1_score: int
    participant2_score: int


class StatusRequest(BaseModel):
    status: str


class OvertakeAckRequest(BaseModel):
    rival_id: int
    match_id: int


class EventRead(BaseModel):
    kind: str
    payload: dict = Field(default_factory=dict)


def outcome_to_dict(outcome: MatchOutcome) -> dict:
    return {
        "match": MatchRead.model_validate(outcome.match).model_dump(),
        "rating": asdict(outcome.rating) if outcome.rating else None,
        "tournament_completed": outcome.tournament_completed,
        "events": [EventRead(kind=event.kind.value, payload=event.payload).model_dump() for event in outcome.events],
    }


@router.post("/tournaments/{tournament_id}/bracket")
async def create_bracket(tournament_id: int, payload: BracketRequest, db: AsyncSession = Depends(get_db)):
    matches = await generate_bracket(db, tournament_id, seeding=payload.seeding, seed=payload.seed, force=payload.force)
    rounds = max(match.round for match in matches)
    return {
        "tournament_id": tournament_id,
        "bracket_size": 2**rounds,
        "rounds": rounds,
        "byes": sum(1 for match in matches if match.round == 1 and match.participant2_id is None),
        "matches": [MatchRead.model_validate(match).model_dump() for match in matches],
    }


@router.get("/tournaments/{tournament_id}/matches")
async def list_matches(tournament_id: int, db: AsyncSession = Depends(get_db)):
    return [MatchRead.model_validate(match).model_dump() for match in await get_tournament_matches(db, tournament_id)]


@router.post("/matches/{match_id}/result")
async def submit_result(match_id: int, payload: ResultRequest, db: AsyncSession = Depends(get_db)):
    outcome = await record_result(db, match_id, payload.participant1_score, payload.participant2_score)
    return outcome_to_dict(outcome)


@router.post("/matches/{match_id}/bye")
async def submit_bye(match_id: int, db: AsyncSession = Depends(get_db)):
    return outcome_to_dict(await resolve_bye(db, match_id))


@router.post("/matches/{match_id}/status")
async def update_status(match_id: int, payload: StatusRequest, db: AsyncSession = Depends(get_db)):
    match = await set_match_status(db, match_id, payload.status)
    return MatchRead.model_validate(match).model_dump()


@router.get("/players/{user_id}/games/{game_id}/standing")
async def player_standing(user_id: int, game_id: int, db: AsyncSession = Depends(get_db)):
    standing = await get_standing(db, user_id, game_id)
    if standing is None:
        raise NotFound("Ranking not found")
    return asdict(standing)


@router.get("/players/{user_id}/games/{game_id}/overtakes")
async def player_overtakes(user_id: int, game_id: int, db: AsyncSession = Depends(get_db)):
    return [asdict(overtake) for overtake in await detect_overtakes(db, user_id, game_id)]


@router.post("/players/{user_id}/overtakes/ack")
async def player_overtake_ack(user_id: int, payload: OvertakeAckRequest, db: AsyncSession = Depends(get_db)):
    created = await acknowledge_overtake(db, user_id, payload.rival_id, payload.match_id)
    return {"acknowledged": True, "created": created}


@router.get("/players/{user_id}/games/{game_id}/rival")
async def player_next_rival(user_id: int, game_id: int, db: AsyncSession = Depends(get_db)):
    rival = await next_rival(db, user_id, game_id)
    return asdict(rival) if rival else None


@router.get("/players/{user_id}/achievements")
async def player_achievements(user_id: int, db: AsyncSession = Depends(get_db)):
    unlocked = await get_unlocked(db, user_id)
    return {
        "stats": asdict(await get_player_stats(db, user_id)),
        "unlocked": [
            {**asdict(ACHIEVEMENTS_BY_ID[row.achievement_id]), "unlocked_at": row.unlocked_at}
            for row in unlocked
            if row.achievement_id in ACHIEVEMENTS_BY_ID
        ],
        "locked": [asdict(achievement) for achievement in locked_achievements(row.achievement_id for row in unlocked)],
    }


@router.get("/games/{game_id}/daily-changes")
async def game_daily_changes(game_id: int, db: AsyncSession = Depends(get_db)):
    gainers, losers = await daily_changes(db, game_id)
    return {"gainers": [asdict(m) for m in gainers], "losers": [asdict(m) for m in losers]}


@router.get("/games/{game_id}/leaderboard")
async def game_leaderboard(game_id: int, limit: int = Query(100, ge=1, le=500), db: AsyncSession = Depends(get_db)):
    return [asdict(row) for row in await leaderboard_page(db, game_id, limit)]


@router.get("/players/{user_id}/elo-history")
async def player_elo_history(
    user_id: int,
    game_id: int | None = None,
    limit: int = Query(20, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    entries = await elo_history(db, user_id, game_id, limit)
    return [{**EloHistoryRead.model_validate(entry).model_dump(), "tier": tier_of(entry.elo_after)} for entry in entries]


@router.get("/tiers/{elo}")
async def tier_lookup(elo: int):
    return asdict(tier_progress(elo))
