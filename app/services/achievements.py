"""Достижения игрока: пороговые предикаты над суммарной статистикой по всем играм."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.achievement import PlayerAchievement
from app.models.ranking import PlayerRanking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerStats:
    total_wins: int = 0
    total_matches: int = 0
    best_streak: int = 0
    peak_elo: int = 0


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    description: str
    rarity: str
    stat: str
    threshold: int

    def is_unlocked(self, stats: PlayerStats) -> bool:
        return getattr(stats, self.stat) >= self.threshold


# Порядок проверки фиксирован; все статистики только растут, поэтому набор монотонен.
ACHIEVEMENTS: tuple[Achievement, ...] = (
    Achievement("first_blood", "First Blood", "Complete your first match", "common", "total_matches", 1),
    Achievement("warrior", "Warrior", "Win 10 matches", "common", "total_wins", 10),
    Achievement("gladiator", "Gladiator", "Win 50 matches", "rare", "total_wins", 50),
    Achievement("champion", "Champion", "Win 100 matches", "epic", "total_wins", 100),
    Achievement("hot_streak", "Hot Streak", "Achieve a 5-win streak", "rare", "best_streak", 5),
    Achievement("unstoppable", "Unstoppable", "Achieve a 10-win streak", "epic", "best_streak", 10),
    Achievement("rising_star", "Rising Star", "Reach Silver rank (1400 ELO)", "common", "peak_elo", 1400),
    Achievement("golden_player", "Golden Player", "Reach Gold rank (1600 ELO)", "rare", "peak_elo", 1600),
    Achievement("platinum_elite", "Platinum Elite", "Reach Platinum rank (1800 ELO)", "epic", "peak_elo", 1800),
    Achievement("diamond_legend", "Diamond Legend", "Reach Diamond rank (2000 ELO)", "epic", "peak_elo", 2000),
    Achievement("grandmaster", "Grandmaster", "Reach Grandmaster rank (2400 ELO)", "legendary", "peak_elo", 2400),
    Achievement("veteran", "Veteran", "Complete 50 matches", "rare", "total_matches", 50),
    Achievement("legend", "Legend", "Complete 200 matches", "legendary", "total_matches", 200),
)

ACHIEVEMENTS_BY_ID: dict[str, Achievement] = {achievement.id: achievement for achievement in ACHIEVEMENTS}


def aggregate_stats(rankings: Iterable[PlayerRanking]) -> PlayerStats:
    # Суммы по победам и матчам, максимумы по серии и пику.
    rankings = list(rankings)
    return PlayerStats(
        total_wins=sum(r.wins for r in rankings),
        total_matches=sum(r.matches_played for r in rankings),
        best_streak=max((r.best_win_streak for r in rankings), default=0),
        peak_elo=max((r.peak_elo for r in rankings), default=0),
    )


def evaluate_achievements(stats: PlayerStats) -> list[str]:
    return [achievement.id for achievement in ACHIEVEMENTS if achievement.is_unlocked(stats)]


def locked_achievements(unlocked_ids: Iterable[str]) -> list[Achievement]:
    unlocked = set(unlocked_ids)
    return [achievement for achievement in ACHIEVEMENTS if achievement.id not in unlocked]


async def get_player_stats(db: AsyncSession, user_id: int) -> PlayerStats:
    rankings = (await db.scalars(select(PlayerRanking).where(PlayerRanking.user_id == user_id))).all()
    return aggregate_stats(rankings)


async def get_unlocked(db: AsyncSession, user_id: int) -> list[PlayerAchievement]:
    rows = await db.scalars(
        select(PlayerAchievement)
        .where(PlayerAchievement.user_id == user_id)
        .order_by(PlayerAchievement.unlocked_at, PlayerAchievement.id)
    )
    return list(rows.all())


async def sync_achievements(db: AsyncSession, user_id: int, now: datetime | None = None) -> list[str]:
    """Фиксирует время первого открытия для новых достижений и возвращает их id.

    Идемпотентно: уже записанные достижения не трогаются. Коммит за вызывающим.
    """
    stats = await get_player_stats(db, user_id)
    holding = evaluate_achievements(stats)
    existing = set(
        (await db.scalars(select(PlayerAchievement.achievement_id).where(PlayerAchievement.user_id == user_id))).all()
    )
    unlocked_at = now or datetime.utcnow()
    newly_unlocked = [achievement_id for achievement_id in holding if achievement_id not in existing]
    for achievement_id in newly_unlocked:
        db.add(PlayerAchievement(user_id=user_id, achievement_id=achievement_id, unlocked_at=unlocked_at))
    if newly_unlocked:
        await db.flush()
        logger.info("user %s unlocked achievements %s", user_id, newly_unlocked)
    return newly_unlocked
