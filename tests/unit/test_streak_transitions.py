"""Streak transitions and daily progress without a database."""

from __future__ import annotations

from datetime import date

import pytest

from edugame.config import Settings
from edugame.gamification.errors import InvalidDailyGoalError
from edugame.gamification.ports import ProfileRecord
from edugame.gamification.streak_service import (
    StreakState,
    advance_streak,
    consecutive_day_run,
    get_daily_progress,
    get_streak_status,
    validate_daily_goal,
)

TODAY = date(2026, 2, 25)
YESTERDAY = date(2026, 2, 24)


class TestAdvanceStreak:
    """UTC calendar-day streak rules."""

    def test_first_activity_starts_streak(self):
        result = advance_streak(StreakState(None, 0, 0), TODAY)
        assert result.outcome == "started"
        assert result.new_streak == 1
        assert result.longest_streak == 1
        assert result.streak_maintained is True

    def test_yesterday_continues(self):
        result = advance_streak(StreakState(YESTERDAY, 4, 6), TODAY)
        assert result.outcome == "continued"
        assert result.new_streak == 5
        assert result.longest_streak == 6
        assert result.streak_maintained is True

    def test_continuing_past_longest_raises_longest(self):
        result = advance_streak(StreakState(YESTERDAY, 6, 6), TODAY)
        assert result.longest_streak == 7

    def test_same_day_is_noop(self):
        result = advance_streak(StreakState(TODAY, 3, 5), TODAY)
        assert result.outcome == "already_counted"
        assert result.new_streak == 3
        assert result.longest_streak == 5
        assert result.streak_maintained is False

    def test_gap_resets(self):
        result = advance_streak(StreakState(date(2026, 2, 20), 9, 9), TODAY)
        assert result.outcome == "reset"
        assert result.previous_streak == 9
        assert result.new_streak == 1
        assert result.longest_streak == 9
        assert result.streak_maintained is False
        assert result.streak_broken is True

    def test_three_consecutive_days(self):
        state = StreakState(None, 0, 0)
        for day in (date(2026, 2, 23), date(2026, 2, 24), TODAY):
            result = advance_streak(state, day)
            state = StreakState(day, result.new_streak, result.longest_streak)
        assert state.current_streak == 3

    def test_month_boundary_is_consecutive(self):
        result = advance_streak(StreakState(date(2026, 1, 31), 2, 2), date(2026, 2, 1))
        assert result.outcome == "continued"


class TestStreakStatus:
    def test_active_today(self):
        profile = ProfileRecord(user_id="u", current_streak=3, longest_streak=3, last_activity_date=TODAY)
        status = get_streak_status(profile, TODAY)
        assert status.is_active_today is True
        assert status.will_expire_today is False
        assert status.effective_streak == 3

    def test_expires_tonight(self):
        profile = ProfileRecord(user_id="u", current_streak=3, longest_streak=3, last_activity_date=YESTERDAY)
        status = get_streak_status(profile, TODAY)
        assert status.is_active_today is False
        assert status.will_expire_today is True
        assert status.effective_streak == 3

    def test_stale_streak_reports_zero(self):
        profile = ProfileRecord(user_id="u", current_streak=8, longest_streak=8, last_activity_date=date(2026, 2, 1))
        status = get_streak_status(profile, TODAY)
        assert status.effective_streak == 0
        assert status.longest_streak == 8

    def test_no_profile(self):
        status = get_streak_status(None, TODAY)
        assert status.current_streak == 0
        assert status.last_activity_date is None


class TestDailyProgress:
    def test_quizzes_today_reset_after_midnight(self):
        profile = ProfileRecord(user_id="u", quizzes_today=4, daily_goal=3, last_activity_date=YESTERDAY)
        progress = get_daily_progress(profile, TODAY, 3)
        assert progress.quizzes_today == 0
        assert progress.goal_met is False

    def test_goal_met(self):
        profile = ProfileRecord(user_id="u", quizzes_today=3, daily_goal=3, last_activity_date=TODAY)
        progress = get_daily_progress(profile, TODAY, 3)
        assert progress.goal_met is True
        assert progress.progress_percent == 100

    def test_partial(self):
        profile = ProfileRecord(user_id="u", quizzes_today=1, daily_goal=4, last_activity_date=TODAY)
        assert get_daily_progress(profile, TODAY, 3).progress_percent == 25

    @pytest.mark.parametrize("goal", [0, 21, -1])
    def test_goal_out_of_range(self, goal):
        with pytest.raises(InvalidDailyGoalError):
            validate_daily_goal(goal, Settings())

    @pytest.mark.parametrize("goal", [1, 20])
    def test_goal_bounds_accepted(self, goal):
        validate_daily_goal(goal, Settings())


class TestConsecutiveDayRun:
    def test_run_ending_today(self):
        days = [TODAY, YESTERDAY, date(2026, 2, 23)]
        assert consecutive_day_run(days, TODAY) == 3

    def test_run_ending_yesterday_still_counts(self):
        days = [YESTERDAY, date(2026, 2, 23)]
        assert consecutive_day_run(days, TODAY) == 2

    def test_gap_stops_run(self):
        days = [TODAY, date(2026, 2, 23)]
        assert consecutive_day_run(days, TODAY) == 1

    def test_empty(self):
        assert consecutive_day_run([], TODAY) == 0
