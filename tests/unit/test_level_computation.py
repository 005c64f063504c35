"""Level computation tests."""

import pytest

from edugame.gamification.level_thresholds import (
    LEVEL_THRESHOLDS,
    MAX_LEVEL,
    compute_level,
    level_for_xp,
)


class TestLevelComputation:
    """Step function over cumulative XP."""

    def test_level_1_at_zero_xp(self):
        result = compute_level(0)
        assert result["level"] == 1
        assert result["title"] == "First Note"

    def test_level_boundary_99_xp(self):
        """99 XP is still level 1."""
        assert compute_level(99)["level"] == 1

    def test_level_2_at_100_xp(self):
        result = compute_level(100)
        assert result["level"] == 2
        assert result["title"] == "Note Reader"

    def test_xp_into_level_calculation(self):
        result = compute_level(150)  # 50 XP into level 2
        assert result["xp_into_level"] == 50
        assert result["xp_for_level"] == 150  # 250 - 100
        assert result["progress_percent"] == 33

    def test_max_level_exceeded(self):
        result = compute_level(1_000_000)
        assert result["level"] == MAX_LEVEL == 15
        assert result["title"] == "Maestro"
        assert result["next_level"] == 15
        assert result["progress_percent"] == 100

    def test_negative_xp_counts_as_zero(self):
        assert level_for_xp(-50) == 1
        assert compute_level(-50)["xp_into_level"] == 0

    @pytest.mark.parametrize(
        "xp,expected_level",
        [
            (0, 1),
            (100, 2),
            (249, 2),
            (250, 3),
            (500, 4),
            (1000, 5),
            (7499, 9),
            (7500, 10),
            (25000, 15),
        ],
    )
    def test_level_thresholds(self, xp, expected_level):
        assert level_for_xp(xp) == expected_level

    def test_monotonic_non_decreasing(self):
        previous = level_for_xp(0)
        for xp in range(0, 30_000, 7):
            current = level_for_xp(xp)
            assert current >= previous
            previous = current

    def test_thresholds_strictly_increasing(self):
        cumulative = [t["cumulative"] for t in LEVEL_THRESHOLDS]
        assert cumulative == sorted(set(cumulative))
        assert cumulative[0] == 0
