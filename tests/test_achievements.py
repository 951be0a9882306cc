import unittest
from dataclasses import replace
from datetime import datetime

from app.models.ranking import PlayerRanking
from app.services.achievements import (
    ACHIEVEMENTS,
    ACHIEVEMENTS_BY_ID,
    PlayerStats,
    aggregate_stats,
    evaluate_achievements,
    get_unlocked,
    locked_achievements,
    sync_achievements,
)
from sqlite_session import create_memory_db


def _ranking(user_id: int, game_id: int, wins: int, losses: int, best_streak: int, peak: int) -> PlayerRanking:
    return PlayerRanking(
        user_id=user_id,
        game_id=game_id,
        elo_rating=peak,
        peak_elo=peak,
        wins=wins,
        losses=losses,
        matches_played=wins + losses,
        win_streak=0,
        best_win_streak=best_streak,
    )


class EvaluateAchievementsTests(unittest.TestCase):
    def test_ten_wins_out_of_twelve(self) -> None:
        stats = PlayerStats(total_wins=10, total_matches=12, best_streak=3, peak_elo=1300)
        self.assertEqual(evaluate_achievements(stats), ["first_blood", "warrior"])

    def test_empty_stats_unlock_nothing(self) -> None:
        self.assertEqual(evaluate_achievements(PlayerStats()), [])
        self.assertEqual(len(locked_achievements([])), len(ACHIEVEMENTS))

    def test_thresholds_are_inclusive(self) -> None:
        for achievement in ACHIEVEMENTS:
            with self.subTest(achievement=achievement.id):
                at_threshold = replace(PlayerStats(), **{achievement.stat: achievement.threshold})
                below = replace(PlayerStats(), **{achievement.stat: achievement.threshold - 1})
                self.assertIn(achievement.id, evaluate_achievements(at_threshold))
                self.assertNotIn(achievement.id, evaluate_achievements(below))

    def test_growing_stats_never_lose_achievements(self) -> None:
        held: set[str] = set()
        for step in range(0, 260, 7):
            stats = PlayerStats(
                total_wins=step // 2,
                total_matches=step,
                best_streak=min(step // 20, 12),
                peak_elo=1200 + step * 5,
            )
            current = set(evaluate_achievements(stats))
            self.assertTrue(held <= current)
            held = current
        self.assertEqual(held, set(ACHIEVEMENTS_BY_ID))

    def test_locked_keeps_catalogue_order(self) -> None:
        locked = locked_achievements(["first_blood", "warrior", "legend"])
        self.assertEqual(locked[0].id, "gladiator")
        self.assertNotIn("legend", [a.id for a in locked])


class AggregateStatsTests(unittest.TestCase):
    def test_sums_and_maximums_across_games(self) -> None:
        stats = aggregate_stats(
            [
                _ranking(1, 1, wins=7, losses=2, best_streak=4, peak=1450),
                _ranking(1, 2, wins=5, losses=6, best_streak=2, peak=1620),
            ]
        )
        self.assertEqual(stats, PlayerStats(total_wins=12, total_matches=20, best_streak=4, peak_elo=1620))

    def test_no_rankings(self) -> None:
        self.assertEqual(aggregate_stats([]), PlayerStats())


class SyncAchievementsTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine, self.session_factory = await create_memory_db()
        self.db = self.session_factory()

    async def asyncTearDown(self) -> None:
        await self.db.close()
        await self.engine.dispose()

    async def test_unlock_time_recorded_once(self) -> None:
        self.db.add(_ranking(4, 1, wins=8, losses=1, best_streak=5, peak=1410))
        self.db.add(_ranking(4, 2, wins=2, losses=0, best_streak=2, peak=1250))
        await self.db.commit()
        first_time = datetime(2026, 9, 1, 10, 0, 0)

        unlocked = await sync_achievements(self.db, 4, first_time)
        await self.db.commit()
        self.assertEqual(unlocked, ["first_blood", "warrior", "hot_streak", "rising_star"])

        again = await sync_achievements(self.db, 4, datetime(2026, 9, 2, 10, 0, 0))
        await self.db.commit()
        self.assertEqual(again, [])

        stored = await get_unlocked(self.db, 4)
        self.assertEqual({a.achievement_id for a in stored}, set(unlocked))
        self.assertTrue(all(a.unlocked_at == first_time for a in stored))

    async def test_player_without_rankings(self) -> None:
        self.assertEqual(await sync_achievements(self.db, 99), [])
        self.assertEqual(await get_unlocked(self.db, 99), [])


if __name__ == "__main__":
    unittest.main()
