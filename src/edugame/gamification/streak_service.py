"""Daily streak tracking and daily-goal progress.

A streak counts consecutive UTC calendar days with at least one completed
quiz. ``today`` is always derived from the server clock by the caller;
nothing here accepts a client timestamp.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from edugame.config import Settings
from edugame.gamification.errors import InvalidDailyGoalError
from edugame.gamification.periods import utc_today
from edugame.gamification.ports import ActivityRecord, GamificationStore, ProfileRecord
from edugame.gamification.schemas import DailyProgress, StreakStatus, StreakUpdateResult
from edugame.gamification.xp_service import is_perfect_score

logger = logging.getLogger(__name__)

# Time-of-day achievement windows (UTC hours)
EARLY_BIRD_BEFORE_HOUR = 8
NIGHT_OWL_FROM_HOUR = 22


class StreakOutcome(str, Enum):
    STARTED = "started"  # first activity ever
    CONTINUED = "continued"  # last activity was yesterday
    ALREADY_COUNTED = "already_counted"  # already active today
    RESET = "reset"  # gap of more than one day


@dataclass(frozen=True)
class StreakState:
    last_activity_date: date | None
    current_streak: int
    longest_streak: int


def advance_streak(state: StreakState, today: date) -> StreakUpdateResult:
    """Apply one quiz completion on ``today`` to the streak state."""
    last = state.last_activity_date

    if last == today:
        outcome = StreakOutcome.ALREADY_COUNTED
        new_streak = state.current_streak
    elif last is not None and last == today - timedelta(days=1):
        outcome = StreakOutcome.CONTINUED
        new_streak = state.current_streak + 1
    elif last is None:
        outcome = StreakOutcome.STARTED
        new_streak = 1
    else:
        outcome = StreakOutcome.RESET
        new_streak = 1

    return StreakUpdateResult(
        previous_streak=state.current_streak,
        new_streak=new_streak,
        longest_streak=max(state.longest_streak, new_streak),
        outcome=outcome.value,
        streak_maintained=outcome in (StreakOutcome.STARTED, StreakOutcome.CONTINUED),
    )


def effective_quizzes_today(profile: ProfileRecord, today: date) -> int:
    """quizzes_today resets at UTC midnight even if no write happened since."""
    return profile.quizzes_today if profile.last_activity_date == today else 0


def get_streak_status(profile: ProfileRecord | None, today: date) -> StreakStatus:
    if profile is None:
        return StreakStatus(
            current_streak=0,
            longest_streak=0,
            effective_streak=0,
            is_active_today=False,
            will_expire_today=False,
        )

    last = profile.last_activity_date
    yesterday = today - timedelta(days=1)
    is_active_today = last == today
    alive = last is not None and last >= yesterday

    return StreakStatus(
        current_streak=profile.current_streak,
        longest_streak=profile.longest_streak,
        effective_streak=profile.current_streak if alive else 0,
        is_active_today=is_active_today,
        # Played yesterday but not yet today: the streak ends at midnight
        will_expire_today=last == yesterday and profile.current_streak > 0,
        last_activity_date=last,
    )


def get_daily_progress(profile: ProfileRecord | None, today: date, default_goal: int) -> DailyProgress:
    if profile is None:
        return DailyProgress(quizzes_today=0, daily_goal=default_goal, goal_met=False, progress_percent=0)
    done = effective_quizzes_today(profile, today)
    goal = profile.daily_goal
    return DailyProgress(
        quizzes_today=done,
        daily_goal=goal,
        goal_met=done >= goal,
        progress_percent=min(100, done * 100 // goal) if goal > 0 else 100,
    )


def validate_daily_goal(daily_goal: int, settings: Settings) -> None:
    if not settings.daily_goal_min <= daily_goal <= settings.daily_goal_max:
        raise InvalidDailyGoalError(
            f"Daily goal must be between {settings.daily_goal_min} and {settings.daily_goal_max}"
        )


async def update_daily_goal(
    store: GamificationStore,
    user_id: str,
    daily_goal: int,
    *,
    now: datetime,
    settings: Settings,
) -> DailyProgress:
    """Change the user's daily quiz target. Does not commit."""
    validate_daily_goal(daily_goal, settings)
    await store.get_or_create_profile(user_id, daily_goal=settings.default_daily_goal, now=now)
    await store.set_daily_goal(user_id, daily_goal, now=now)
    logger.info("Daily goal updated: user=%s goal=%d", user_id, daily_goal)
    profile = await store.get_profile(user_id)
    return get_daily_progress(profile, utc_today(now), settings.default_daily_goal)


def consecutive_day_run(days: Iterable[date], today: date) -> int:
    """Length of the run of consecutive days ending today, or yesterday if today is absent."""
    seen = set(days)
    cursor = today if today in seen else today - timedelta(days=1)
    run = 0
    while cursor in seen:
        run += 1
        cursor -= timedelta(days=1)
    return run


async def record_quiz_activity(
    store: GamificationStore,
    user_id: str,
    attempt_id: str,
    score: int,
    total_questions: int,
    *,
    now: datetime,
) -> tuple[StreakUpdateResult, ActivityRecord, bool]:
    """Update daily counters and the streak for one attempt. Does not commit.

    Returns (streak result, activity row, applied). When the attempt was
    already recorded nothing is written, the stored outcome is returned and
    ``applied`` is False.
    """
    profile = await store.lock_profile(user_id)
    today = utc_today(now)

    streak = advance_streak(
        StreakState(
            last_activity_date=profile.last_activity_date,
            current_streak=profile.current_streak,
            longest_streak=profile.longest_streak,
        ),
        today,
    )
    perfect = is_perfect_score(score, total_questions)
    activity = ActivityRecord(
        user_id=user_id,
        attempt_id=attempt_id,
        activity_date=today,
        completed_hour=now.hour,
        score=score,
        total_questions=total_questions,
        is_perfect=perfect,
        quizzes_today=effective_quizzes_today(profile, today) + 1,
        previous_streak=streak.previous_streak,
        streak_after=streak.new_streak,
        longest_streak_after=streak.longest_streak,
        streak_outcome=streak.outcome,
        created_at=now,
    )

    if not await store.insert_activity_if_absent(activity):
        stored = await store.get_activity(user_id, attempt_id)
        if stored is None:  # pragma: no cover - conflict implies the row exists
            raise RuntimeError(f"Activity {attempt_id} conflicted but was not found")
        logger.debug("Attempt already recorded: user=%s attempt=%s", user_id, attempt_id)
        replay = StreakUpdateResult(
            previous_streak=stored.previous_streak,
            new_streak=stored.streak_after,
            longest_streak=stored.longest_streak_after,
            outcome=stored.streak_outcome,
            streak_maintained=stored.streak_outcome
            in (StreakOutcome.STARTED.value, StreakOutcome.CONTINUED.value),
        )
        return replay, stored, False

    await store.upsert_streak(
        user_id,
        current_streak=streak.new_streak,
        longest_streak=streak.longest_streak,
        last_activity_date=today,
        quizzes_today=activity.quizzes_today,
        completed_delta=1,
        perfect_delta=1 if perfect else 0,
        now=now,
    )

    if streak.outcome == StreakOutcome.RESET.value and streak.previous_streak > 1:
        logger.info("Streak broken: user=%s previous=%d", user_id, streak.previous_streak)

    return streak, activity, True
