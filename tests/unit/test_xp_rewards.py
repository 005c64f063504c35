"""XP reward calculation and award validation."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from edugame.gamification.errors import InvalidQuizResultError, InvalidXPAwardError
from edugame.gamification.xp_service import (
    XP_REWARDS,
    XPReason,
    award_xp,
    calculate_quiz_xp,
    streak_bonus_for,
)

NOW = datetime(2026, 2, 25, 14, 0, tzinfo=timezone.utc)


def _amounts(breakdown):
    return {item.reason: item.amount for item in breakdown}


class TestCalculateQuizXP:
    """Base XP for a completed quiz."""

    def test_perfect_score(self):
        assert _amounts(calculate_quiz_xp(10, 10)) == {
            "quiz_complete": 10,
            "score_bonus": 20,
            "perfect_score": 25,
        }

    def test_half_score(self):
        assert _amounts(calculate_quiz_xp(5, 10)) == {"quiz_complete": 10, "score_bonus": 10}

    def test_zero_score_has_no_bonus_line(self):
        assert _amounts(calculate_quiz_xp(0, 10)) == {"quiz_complete": 10}

    def test_score_bonus_rounds_down(self):
        # 1 * 20 // 3 == 6
        assert _amounts(calculate_quiz_xp(1, 3))["score_bonus"] == 6

    @pytest.mark.parametrize("score,total", [(11, 10), (-1, 10), (0, 0)])
    def test_invalid_results_rejected(self, score, total):
        with pytest.raises(InvalidQuizResultError):
            calculate_quiz_xp(score, total)


class TestStreakBonus:
    def test_two_per_day(self):
        assert streak_bonus_for(1) == 2
        assert streak_bonus_for(4) == 8

    def test_capped(self):
        assert streak_bonus_for(10) == XP_REWARDS["STREAK_BONUS_MAX"]
        assert streak_bonus_for(365) == 20

    def test_no_streak_no_bonus(self):
        assert streak_bonus_for(0) == 0


class TestAwardXPValidation:
    """Invalid awards are rejected before touching the store."""

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self):
        store = AsyncMock()
        with pytest.raises(InvalidXPAwardError):
            await award_xp(store, "alice", -5, XPReason.QUIZ_COMPLETE, "a1", now=NOW)
        assert store.mock_calls == []

    @pytest.mark.asyncio
    async def test_unknown_reason_rejected(self):
        store = AsyncMock()
        with pytest.raises(InvalidXPAwardError):
            await award_xp(store, "alice", 5, "bribe", "a1", now=NOW)
        assert store.mock_calls == []

    @pytest.mark.asyncio
    async def test_empty_user_rejected(self):
        store = AsyncMock()
        with pytest.raises(InvalidXPAwardError):
            await award_xp(store, "", 5, XPReason.QUIZ_COMPLETE, now=NOW)
        assert store.mock_calls == []

    def test_invalid_award_is_value_error(self):
        assert issubclass(InvalidXPAwardError, ValueError)
