"""Unit tests for leaderboard period boundaries."""

from datetime import date, datetime, timedelta, timezone

import pytest

from edugame.gamification.periods import (
    build_period_key,
    get_period_bounds,
    get_period_info,
    get_week_start,
    utc_today,
)


class TestWeeklyBoundaries:
    """Weeks start on the configured weekday at 00:00 UTC."""

    def test_monday_start(self):
        # 2026-02-25 is a Wednesday
        assert get_week_start(date(2026, 2, 25)) == date(2026, 2, 23)

    def test_monday_is_its_own_start(self):
        assert get_week_start(date(2026, 2, 23)) == date(2026, 2, 23)

    def test_sunday_belongs_to_previous_monday(self):
        assert get_week_start(date(2026, 3, 1)) == date(2026, 2, 23)

    def test_sunday_week_start(self):
        assert get_week_start(date(2026, 2, 25), week_start=6) == date(2026, 2, 22)

    def test_weekly_window_is_seven_days(self):
        now = datetime(2026, 2, 25, 14, 0, tzinfo=timezone.utc)
        first, next_first = get_period_bounds("weekly", now)
        assert next_first - first == timedelta(days=7)

    def test_period_info(self):
        now = datetime(2026, 2, 25, 12, 0, tzinfo=timezone.utc)
        info = get_period_info("weekly", now)
        assert info.key == "weekly:2026-02-23"
        assert info.starts_at == datetime(2026, 2, 23, tzinfo=timezone.utc)
        assert info.ends_at == datetime(2026, 3, 2, tzinfo=timezone.utc)
        assert info.period_end == date(2026, 3, 1)
        assert info.seconds_remaining == int(timedelta(days=4, hours=12).total_seconds())
        assert info.days_remaining == 5


class TestMonthlyBoundaries:
    def test_month_start(self):
        now = datetime(2026, 2, 25, 14, 0, tzinfo=timezone.utc)
        assert get_period_bounds("monthly", now) == (date(2026, 2, 1), date(2026, 3, 1))

    def test_december_rolls_over_year(self):
        now = datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc)
        assert get_period_bounds("monthly", now) == (date(2026, 12, 1), date(2027, 1, 1))

    def test_key(self):
        assert build_period_key("monthly", date(2026, 2, 1)) == "monthly:2026-02-01"


class TestClock:
    def test_utc_today_converts_offset(self):
        # 23:30 at UTC-5 is already the next day in UTC
        tz = timezone(timedelta(hours=-5))
        assert utc_today(datetime(2026, 2, 25, 23, 30, tzinfo=tz)) == date(2026, 2, 26)

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            get_period_bounds("yearly", datetime(2026, 2, 25, tzinfo=timezone.utc))
