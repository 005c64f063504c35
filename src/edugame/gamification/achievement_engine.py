"""Achievement engine — evaluates the catalog against a user's stats."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from edugame.config import Settings, get_settings
from edugame.gamification.achievements import ACHIEVEMENTS, ACHIEVEMENTS_BY_ID, Achievement, Metric
from edugame.gamification.periods import start_of_day, utc_now, utc_today
from edugame.gamification.ports import GamificationStore
from edugame.gamification.schemas import (
    AchievementProgress,
    AchievementResponse,
    EarnedAchievement,
    NewAchievement,
    UserAchievements,
)
from edugame.gamification.streak_service import (
    EARLY_BIRD_BEFORE_HOUR,
    NIGHT_OWL_FROM_HOUR,
    consecutive_day_run,
)
from edugame.gamification.xp_service import XPReason, award_xp

logger = logging.getLogger(__name__)

# First window scanned for daily-goal grants; doubled while the run fills it
DAILY_GOAL_LOOKBACK_DAYS = 30


@dataclass(frozen=True)
class AchievementStats:
    """Canonical per-user stats every unlock predicate is evaluated against."""

    quizzes_completed: int = 0
    perfect_scores: int = 0
    longest_streak: int = 0
    current_level: int = 1
    total_xp: int = 0
    daily_goal_streak: int = 0
    early_completions: int = 0
    late_completions: int = 0


def metric_value(stats: AchievementStats, metric: Metric) -> int:
    return int(getattr(stats, metric.value))


def is_unlocked(stats: AchievementStats, achievement: Achievement) -> bool:
    return metric_value(stats, achievement.metric) >= achievement.threshold


def to_response(achievement: Achievement) -> AchievementResponse:
    return AchievementResponse(
        id=achievement.id,
        name=achievement.name,
        description=achievement.description,
        icon=achievement.icon,
        category=achievement.category,
        xp_reward=achievement.xp_reward,
    )


def achievement_progress(
    stats: AchievementStats, earned_ids: set[str]
) -> list[AchievementProgress]:
    """Progress toward every visible, not yet earned achievement, in catalog order."""
    progress = []
    for achievement in sorted(ACHIEVEMENTS, key=lambda a: a.sort_order):
        if achievement.is_hidden or achievement.id in earned_ids:
            continue
        progress.append(
            AchievementProgress(
                achievement_id=achievement.id,
                current=min(metric_value(stats, achievement.metric), achievement.threshold),
                required=achievement.threshold,
            )
        )
    return progress


def _parse_goal_dates(refs: list[str]) -> list[date]:
    dates = []
    for ref in refs:
        try:
            dates.append(date.fromisoformat(ref))
        except ValueError:
            logger.warning("Ignoring malformed daily goal ref: %s", ref)
    return dates


class AchievementEngine:
    """Loads canonical stats and unlocks achievements exactly once per user."""

    def __init__(
        self,
        store: GamificationStore,
        clock: Callable[[], datetime] = utc_now,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.settings = settings or get_settings()

    async def load_stats(self, user_id: str) -> AchievementStats:
        profile = await self.store.get_profile(user_id)
        if profile is None:
            return AchievementStats()

        today = utc_today(self.clock())
        daily_goal_streak = await self._daily_goal_streak(user_id, today)
        early, late = await self.store.count_time_of_day_completions(
            user_id,
            early_before_hour=EARLY_BIRD_BEFORE_HOUR,
            late_from_hour=NIGHT_OWL_FROM_HOUR,
        )

        return AchievementStats(
            quizzes_completed=profile.total_quizzes_completed,
            perfect_scores=profile.total_perfect_scores,
            longest_streak=profile.longest_streak,
            current_level=profile.current_level,
            total_xp=profile.total_xp,
            daily_goal_streak=daily_goal_streak,
            early_completions=early,
            late_completions=late,
        )

    async def _daily_goal_streak(self, user_id: str, today: date) -> int:
        days = DAILY_GOAL_LOOKBACK_DAYS
        while True:
            since = start_of_day(today - timedelta(days=days))
            refs = await self.store.list_grant_refs(user_id, XPReason.DAILY_GOAL.value, since=since)
            run = consecutive_day_run(_parse_goal_dates(refs), today)
            # A run shorter than the window is complete
            if run < days:
                return run
            days *= 2

    async def _earned_ids(self, user_id: str) -> set[str]:
        return {r.achievement_id for r in await self.store.list_user_achievements(user_id)}

    async def get_user_achievements(self, user_id: str) -> UserAchievements:
        earned_records = await self.store.list_user_achievements(user_id)
        earned_ids = {r.achievement_id for r in earned_records}
        stats = await self.load_stats(user_id)

        earned = [
            EarnedAchievement(achievement=to_response(ACHIEVEMENTS_BY_ID[r.achievement_id]), earned_at=r.earned_at)
            for r in earned_records
            if r.achievement_id in ACHIEVEMENTS_BY_ID
        ]
        available = [
            to_response(a)
            for a in sorted(ACHIEVEMENTS, key=lambda a: a.sort_order)
            if not a.is_hidden and a.id not in earned_ids
        ]
        return UserAchievements(
            earned=earned,
            available=available,
            progress=achievement_progress(stats, earned_ids),
        )

    async def get_recent_achievements(self, user_id: str, limit: int = 3) -> list[EarnedAchievement]:
        records = await self.store.list_user_achievements(user_id)
        recent = []
        for record in records:
            achievement = ACHIEVEMENTS_BY_ID.get(record.achievement_id)
            if achievement is None:
                continue
            recent.append(EarnedAchievement(achievement=to_response(achievement), earned_at=record.earned_at))
            if len(recent) >= limit:
                break
        return recent

    async def evaluate_candidates(self, user_id: str) -> list[Achievement]:
        """Not-yet-earned achievements whose predicate holds right now."""
        earned_ids = await self._earned_ids(user_id)
        stats = await self.load_stats(user_id)
        return [
            a
            for a in sorted(ACHIEVEMENTS, key=lambda a: a.sort_order)
            if a.id not in earned_ids and is_unlocked(stats, a)
        ]

    async def award(self, user_id: str, achievement: Achievement) -> NewAchievement | None:
        """Record the unlock and grant its XP. Returns None if another caller got there first.

        Does not commit.
        """
        now = self.clock()
        inserted = await self.store.insert_achievement_if_absent(user_id, achievement.id, now=now)
        if not inserted:
            logger.debug("Achievement already awarded: user=%s id=%s", user_id, achievement.id)
            return None

        xp_awarded = 0
        if achievement.xp_reward > 0:
            result = await award_xp(
                self.store,
                user_id,
                achievement.xp_reward,
                XPReason.ACHIEVEMENT,
                source_ref=achievement.id,
                now=now,
                default_daily_goal=self.settings.default_daily_goal,
            )
            xp_awarded = result.amount_awarded

        logger.info("Achievement unlocked: user=%s id=%s xp=%d", user_id, achievement.id, xp_awarded)
        return NewAchievement(achievement=to_response(achievement), xp_awarded=xp_awarded)

    async def unlock_achievements(self, user_id: str) -> list[NewAchievement]:
        """Award every achievement the user now qualifies for.

        Achievement XP can push the user over further level or XP
        thresholds, so evaluation repeats until a pass unlocks nothing.
        Each pass unlocks at least one catalog entry, which bounds the loop.
        """
        unlocked: list[NewAchievement] = []
        for _ in range(len(ACHIEVEMENTS)):
            awarded = []
            for achievement in await self.evaluate_candidates(user_id):
                new = await self.award(user_id, achievement)
                if new is not None:
                    awarded.append(new)
            if not awarded:
                break
            unlocked.extend(awarded)
        return unlocked
