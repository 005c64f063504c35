"""UTC clock and leaderboard period boundaries.

Windows are half-open: ``starts_at <= t < ends_at``. A grant stamped one
microsecond before the boundary belongs to the previous period.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone

from edugame.gamification.schemas import PeriodInfo

LEADERBOARD_TYPES: tuple[str, ...] = ("weekly", "monthly")


def utc_now() -> datetime:
    """Server clock. The only time source the engine trusts."""
    return datetime.now(timezone.utc)


def utc_today(now: datetime) -> date:
    """Calendar day of ``now`` in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def get_week_start(d: date, week_start: int = 0) -> date:
    """Most recent ``week_start`` weekday on or before ``d`` (0 = Monday)."""
    return d - timedelta(days=(d.weekday() - week_start) % 7)


def get_month_start(d: date) -> date:
    return d.replace(day=1)


def _next_month(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1)
    return date(d.year, d.month + 1, 1)


def get_period_bounds(
    period_type: str, now: datetime, week_start: int = 0
) -> tuple[date, date]:
    """Return (first day, first day of the next period) for the period containing now."""
    today = utc_today(now)
    if period_type == "weekly":
        first = get_week_start(today, week_start)
        return first, first + timedelta(days=7)
    if period_type == "monthly":
        first = get_month_start(today)
        return first, _next_month(first)
    raise ValueError(f"Unknown period: {period_type}")


def build_period_key(period_type: str, period_start: date) -> str:
    """Stable key e.g. 'weekly:2026-02-23' or 'monthly:2026-02-01'."""
    return f"{period_type}:{period_start.isoformat()}"


def get_period_info(period_type: str, now: datetime, week_start: int = 0) -> PeriodInfo:
    """Window bounds and time remaining for display."""
    first, next_first = get_period_bounds(period_type, now, week_start)
    starts_at = start_of_day(first)
    ends_at = start_of_day(next_first)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    remaining = max(0.0, (ends_at - now).total_seconds())
    return PeriodInfo(
        period_type=period_type,
        key=build_period_key(period_type, first),
        period_start=first,
        period_end=next_first - timedelta(days=1),
        starts_at=starts_at,
        ends_at=ends_at,
        days_remaining=math.ceil(remaining / 86400),
        seconds_remaining=int(remaining),
    )
