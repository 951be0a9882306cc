import unittest

from app.services.rank import TIER_ORDER, tier_changed, tier_level, tier_of, tier_progress


class TierOfTests(unittest.TestCase):
    def test_threshold_boundaries_across_all_tiers(self) -> None:
        # exact threshold, threshold-1 and midpoints for each tier
        cases: list[tuple[int, str]] = [
            (-40, "Iron"),
            (0, "Iron"),
            (1199, "Iron"),
            (1200, "Bronze"),
            (1300, "Bronze"),
            (1399, "Bronze"),
            (1400, "Silver"),
            (1599, "Silver"),
            (1600, "Gold"),
            (1799, "Gold"),
            (1800, "Platinum"),
            (1999, "Platinum"),
            (2000, "Diamond"),
            (2199, "Diamond"),
            (2200, "Master"),
            (2399, "Master"),
            (2400, "Grandmaster"),
            (3150, "Grandmaster"),
        ]

        for elo, expected in cases:
            with self.subTest(elo=elo, expected=expected):
                self.assertEqual(tier_of(elo), expected)

    def test_tier_is_monotonic_over_integer_range(self) -> None:
        previous_level = tier_level(-100)
        for elo in range(-100, 2700):
            level = tier_level(elo)
            self.assertGreaterEqual(level, previous_level)
            self.assertIn(tier_of(elo), TIER_ORDER)
            previous_level = level
        self.assertEqual(tier_level(0), 1)
        self.assertEqual(tier_level(2400), 8)

    def test_tier_changed(self) -> None:
        self.assertTrue(tier_changed(1590, 1606))
        self.assertTrue(tier_changed(1200, 1184))
        self.assertFalse(tier_changed(1500, 1516))


class TierProgressTests(unittest.TestCase):
    def test_progress_inside_band(self) -> None:
        progress = tier_progress(1500)
        self.assertEqual(progress.current_tier, "Silver")
        self.assertEqual(progress.next_tier, "Gold")
        self.assertEqual(progress.percentage, 50)
        self.assertEqual(progress.remaining, 100)

    def test_progress_rounds_half_up(self) -> None:
        self.assertEqual(tier_progress(1201).percentage, 1)
        self.assertEqual(tier_progress(1203).percentage, 2)

    def test_grandmaster_is_capped(self) -> None:
        progress = tier_progress(2650)
        self.assertEqual(progress.current_tier, "Grandmaster")
        self.assertIsNone(progress.next_tier)
        self.assertEqual(progress.percentage, 100)
        self.assertEqual(progress.remaining, 0)


if __name__ == "__main__":
    unittest.main()
