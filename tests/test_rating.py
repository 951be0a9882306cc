import unittest
from datetime import datetime

from sqlalchemy import select

from app.core.errors import MatchNotReady
from app.models.ranking import EloHistoryEntry
from app.services.rating import (
    apply_match_result,
    apply_outcome,
    expected_score,
    new_ranking,
    rating_delta,
    round_half_up,
)
from sqlite_session import add_ranking, create_memory_db, reload_ranking


class EloFormulaTests(unittest.TestCase):
    def test_equal_ratings_exchange_sixteen_points(self) -> None:
        self.assertAlmostEqual(expected_score(1500, 1500), 0.5)
        self.assertEqual(rating_delta(1500, 1500, k_factor=32), 16)

    def test_upset_moves_more_points_than_expected_win(self) -> None:
        favourite_win = rating_delta(1800, 1400, k_factor=32)
        upset = rating_delta(1400, 1800, k_factor=32)
        self.assertEqual(favourite_win, 3)
        self.assertEqual(upset, 29)
        self.assertEqual(favourite_win + upset, 32)

    def test_expected_scores_are_complementary(self) -> None:
        for rating, opponent in [(1200, 1200), (1350, 1610), (2400, 900)]:
            with self.subTest(rating=rating, opponent=opponent):
                self.assertAlmostEqual(expected_score(rating, opponent) + expected_score(opponent, rating), 1.0)

    def test_round_half_up(self) -> None:
        self.assertEqual(round_half_up(16.5), 17)
        self.assertEqual(round_half_up(16.49), 16)
        self.assertEqual(round_half_up(-16.5), -16)


class ApplyOutcomeTests(unittest.TestCase):
    def test_winner_and_loser_fields(self) -> None:
        winner = new_ranking(user_id=1, game_id=1)
        loser = new_ranking(user_id=2, game_id=1)
        winner.elo_rating = winner.peak_elo = 1500
        loser.elo_rating = loser.peak_elo = 1500
        loser.win_streak = loser.best_win_streak = 4

        apply_outcome(winner, loser, 16)

        self.assertEqual((winner.elo_rating, loser.elo_rating), (1516, 1484))
        self.assertEqual((winner.peak_elo, loser.peak_elo), (1516, 1500))
        self.assertEqual((winner.win_streak, winner.best_win_streak), (1, 1))
        self.assertEqual((loser.win_streak, loser.best_win_streak), (0, 4))
        self.assertEqual((winner.wins, winner.losses, winner.matches_played), (1, 0, 1))
        self.assertEqual((loser.wins, loser.losses, loser.matches_played), (0, 1, 1))

    def test_invariants_hold_over_a_series(self) -> None:
        first = new_ranking(user_id=1, game_id=1)
        second = new_ranking(user_id=2, game_id=1)
        for winner, loser in [(first, second)] * 6 + [(second, first)] * 2 + [(first, second)] * 3:
            apply_outcome(winner, loser, rating_delta(winner.elo_rating, loser.elo_rating))
            for ranking in (first, second):
                self.assertEqual(ranking.matches_played, ranking.wins + ranking.losses)
                self.assertGreaterEqual(ranking.peak_elo, ranking.elo_rating)
                self.assertLessEqual(ranking.win_streak, ranking.best_win_streak)
        self.assertEqual(first.best_win_streak, 6)
        self.assertEqual(first.win_streak, 3)
        self.assertEqual(first.elo_rating + second.elo_rating, 2400)


class ApplyMatchResultTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine, self.session_factory = await create_memory_db()
        self.db = self.session_factory()

    async def asyncTearDown(self) -> None:
        await self.db.close()
        await self.engine.dispose()

    async def test_unseen_players_start_from_base_rating(self) -> None:
        change = await apply_match_result(self.db, match_id=10, winner_id=1, loser_id=2, game_id=7)
        await self.db.commit()

        self.assertEqual((change.winner_before, change.winner_after), (1200, 1216))
        self.assertEqual((change.loser_before, change.loser_after), (1200, 1184))
        self.assertEqual(change.winner_delta, -change.loser_delta)

        winner = await reload_ranking(self.db, 1, game_id=7)
        loser = await reload_ranking(self.db, 2, game_id=7)
        self.assertEqual((winner.elo_rating, winner.wins, winner.win_streak), (1216, 1, 1))
        self.assertEqual((loser.elo_rating, loser.losses, loser.win_streak), (1184, 1, 0))

    async def test_history_rows_match_rankings(self) -> None:
        await add_ranking(self.db, user_id=1, elo=1500)
        await add_ranking(self.db, user_id=2, elo=1500)
        now = datetime(2026, 10, 1, 12, 0, 0)

        await apply_match_result(self.db, match_id=3, winner_id=2, loser_id=1, game_id=1, now=now)
        await self.db.commit()

        entries = (await self.db.scalars(select(EloHistoryEntry).order_by(EloHistoryEntry.user_id))).all()
        self.assertEqual(len(entries), 2)
        for entry in entries:
            ranking = await reload_ranking(self.db, entry.user_id)
            self.assertEqual(entry.elo_after, entry.elo_before + entry.elo_change)
            self.assertEqual(entry.elo_after, ranking.elo_rating)
            self.assertEqual(entry.created_at, now)
        self.assertEqual([entry.elo_change for entry in entries], [-16, 16])

    async def test_reapplying_same_match_is_a_no_op(self) -> None:
        await apply_match_result(self.db, match_id=5, winner_id=1, loser_id=2, game_id=1)
        await self.db.commit()

        repeated = await apply_match_result(self.db, match_id=5, winner_id=1, loser_id=2, game_id=1)
        await self.db.commit()

        self.assertIsNone(repeated)
        winner = await reload_ranking(self.db, 1)
        self.assertEqual((winner.elo_rating, winner.matches_played), (1216, 1))

    async def test_same_player_on_both_sides_is_rejected(self) -> None:
        with self.assertRaises(MatchNotReady):
            await apply_match_result(self.db, match_id=1, winner_id=4, loser_id=4, game_id=1)


if __name__ == "__main__":
    unittest.main()
