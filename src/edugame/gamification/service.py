"""Gamification facade — the single entry point for callers.

``process_quiz_completion`` runs a fixed sequence of steps, committing
after each one. A failing step is rolled back and reported on the result;
the steps before it stay committed. Every step is idempotent per
``attempt_id`` (or per UTC date for the daily goal), so a retry of the
whole call finishes the remaining work without repeating earlier grants.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date, datetime

import redis.asyncio as aioredis
import structlog

from edugame.config import Settings, get_settings
from edugame.gamification.achievement_engine import AchievementEngine
from edugame.gamification.errors import InvalidQuizResultError, InvalidXPAwardError
from edugame.gamification.level_thresholds import compute_level
from edugame.gamification.leaderboard_service import LeaderboardService
from edugame.gamification.periods import utc_now, utc_today
from edugame.gamification.ports import ClassRoster, GamificationStore, ProfileRecord
from edugame.gamification.schemas import (
    DailyProgress,
    EarnedAchievement,
    GamificationStats,
    LeaderboardData,
    LevelInfo,
    NewAchievement,
    PeriodInfo,
    QuizCompletionResult,
    StreakStatus,
    StreakUpdateResult,
    UserAchievements,
    UserLeaderboardStats,
    XPBreakdownItem,
    XPHistoryEntry,
    XPHistoryResponse,
)
from edugame.gamification.streak_service import (
    get_daily_progress,
    get_streak_status,
    record_quiz_activity,
    update_daily_goal,
)
from edugame.gamification.xp_service import (
    XPReason,
    XP_REWARDS,
    award_xp,
    calculate_quiz_xp,
    get_or_create_profile,
    streak_bonus_for,
    validate_quiz_result,
)

logger = structlog.get_logger()

XP_HISTORY_MAX_PER_PAGE = 100


@dataclass
class _Completion:
    """State carried between the steps of one quiz completion."""

    user_id: str
    attempt_id: str
    score: int
    total_questions: int
    now: datetime
    breakdown: list[XPBreakdownItem] = field(default_factory=list)
    streak: StreakUpdateResult | None = None
    activity_date: date | None = None
    quizzes_today: int = 0
    daily_goal_met: bool = False
    new_achievements: list[NewAchievement] = field(default_factory=list)


class GamificationFacade:
    """Orchestrates XP, streaks, achievements and leaderboards for one store."""

    def __init__(
        self,
        store: GamificationStore,
        *,
        redis: aioredis.Redis | None = None,
        roster: ClassRoster | None = None,
        clock: Callable[[], datetime] = utc_now,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.settings = settings or get_settings()
        self.achievements = AchievementEngine(store, clock, settings=self.settings)
        self.leaderboards = LeaderboardService(
            store, redis=redis, roster=roster, settings=self.settings, clock=clock
        )

    # ── Quiz completion ──

    async def process_quiz_completion(
        self,
        user_id: str,
        score: int,
        total_questions: int,
        attempt_id: str,
    ) -> QuizCompletionResult:
        if not user_id:
            raise InvalidXPAwardError("user_id is required")
        validate_quiz_result(score, total_questions, attempt_id)

        now = self.clock()
        ctx = _Completion(
            user_id=user_id,
            attempt_id=attempt_id,
            score=score,
            total_questions=total_questions,
            now=now,
        )

        profile = await self.ensure_profile(user_id)
        previous_level = profile.current_level

        steps: list[tuple[str, Callable[[_Completion], Awaitable[None]]]] = [
            ("base_xp", self._award_base_xp),
            ("streak", self._update_streak),
            ("daily_goal", self._award_daily_goal),
            ("achievements", self._unlock_achievements),
        ]
        failed_step: str | None = None
        error: str | None = None
        for name, step in steps:
            try:
                await step(ctx)
                await self.store.commit()
            except Exception as exc:
                await self.store.rollback()
                logger.exception(
                    "quiz_completion_step_failed",
                    step=name,
                    user_id=user_id,
                    attempt_id=attempt_id,
                )
                failed_step, error = name, str(exc)
                break

        final = await self.store.get_profile(user_id) or profile
        total_awarded = sum(item.amount for item in ctx.breakdown)

        logger.info(
            "quiz_completion_processed",
            user_id=user_id,
            attempt_id=attempt_id,
            xp_awarded=total_awarded,
            new_total_xp=final.total_xp,
            failed_step=failed_step,
        )

        return QuizCompletionResult(
            total_xp_awarded=total_awarded,
            new_total_xp=final.total_xp,
            previous_level=previous_level,
            new_level=final.current_level,
            leveled_up=final.current_level > previous_level,
            breakdown=ctx.breakdown,
            streak=ctx.streak,
            daily_goal_met=ctx.daily_goal_met,
            new_achievements=ctx.new_achievements,
            failed_step=failed_step,
            error=error,
        )

    async def _grant(self, ctx: _Completion, amount: int, reason: XPReason, source_ref: str) -> bool:
        result = await award_xp(
            self.store,
            ctx.user_id,
            amount,
            reason,
            source_ref,
            now=ctx.now,
            default_daily_goal=self.settings.default_daily_goal,
        )
        if result.duplicate:
            return False
        ctx.breakdown.append(XPBreakdownItem(reason=reason.value, amount=amount, source_ref=source_ref))
        return True

    async def _award_base_xp(self, ctx: _Completion) -> None:
        for item in calculate_quiz_xp(ctx.score, ctx.total_questions):
            await self._grant(ctx, item.amount, XPReason(item.reason), ctx.attempt_id)

    async def _update_streak(self, ctx: _Completion) -> None:
        streak, activity, applied = await record_quiz_activity(
            self.store,
            ctx.user_id,
            ctx.attempt_id,
            ctx.score,
            ctx.total_questions,
            now=ctx.now,
        )
        ctx.streak = streak
        ctx.activity_date = activity.activity_date
        ctx.quizzes_today = activity.quizzes_today

        if applied and streak.streak_maintained:
            bonus = streak_bonus_for(streak.new_streak)
            if bonus > 0:
                await self._grant(ctx, bonus, XPReason.STREAK_BONUS, ctx.attempt_id)

    async def _award_daily_goal(self, ctx: _Completion) -> None:
        profile = await self.store.get_profile(ctx.user_id)
        if profile is None or ctx.activity_date is None:
            return
        if ctx.quizzes_today >= profile.daily_goal:
            # Keyed on the attempt's own day so a late retry cannot claim today's bonus
            ctx.daily_goal_met = await self._grant(
                ctx, XP_REWARDS["DAILY_GOAL_MET"], XPReason.DAILY_GOAL, ctx.activity_date.isoformat()
            )

    async def _unlock_achievements(self, ctx: _Completion) -> None:
        ctx.new_achievements = await self.achievements.unlock_achievements(ctx.user_id)
        for new in ctx.new_achievements:
            if new.xp_awarded > 0:
                ctx.breakdown.append(
                    XPBreakdownItem(
                        reason=XPReason.ACHIEVEMENT.value,
                        amount=new.xp_awarded,
                        source_ref=new.achievement.id,
                    )
                )

    # ── Profile & stats ──

    async def ensure_profile(self, user_id: str) -> ProfileRecord:
        profile = await get_or_create_profile(
            self.store, user_id, now=self.clock(), daily_goal=self.settings.default_daily_goal
        )
        await self.store.commit()
        return profile

    async def _profile_or_default(self, user_id: str) -> ProfileRecord:
        profile = await self.store.get_profile(user_id)
        if profile is None:
            return ProfileRecord(user_id=user_id, daily_goal=self.settings.default_daily_goal)
        return profile

    async def get_stats(self, user_id: str) -> GamificationStats:
        profile = await self._profile_or_default(user_id)
        today = utc_today(self.clock())
        progress = get_daily_progress(profile, today, self.settings.default_daily_goal)
        stats = await self.achievements.load_stats(user_id)

        return GamificationStats(
            total_xp=profile.total_xp,
            current_level=profile.current_level,
            current_streak=get_streak_status(profile, today).effective_streak,
            longest_streak=profile.longest_streak,
            quizzes_today=progress.quizzes_today,
            daily_goal=progress.daily_goal,
            daily_goal_met=progress.goal_met,
            total_quizzes_completed=profile.total_quizzes_completed,
            total_perfect_scores=profile.total_perfect_scores,
            daily_goal_streak=stats.daily_goal_streak,
            level_info=LevelInfo(**compute_level(profile.total_xp)),
            recent_achievements=await self.achievements.get_recent_achievements(user_id),
        )

    async def get_streak_status(self, user_id: str) -> StreakStatus:
        profile = await self.store.get_profile(user_id)
        return get_streak_status(profile, utc_today(self.clock()))

    async def get_daily_progress(self, user_id: str) -> DailyProgress:
        profile = await self.store.get_profile(user_id)
        return get_daily_progress(profile, utc_today(self.clock()), self.settings.default_daily_goal)

    async def update_daily_goal(self, user_id: str, daily_goal: int) -> DailyProgress:
        progress = await update_daily_goal(
            self.store, user_id, daily_goal, now=self.clock(), settings=self.settings
        )
        await self.store.commit()
        return progress

    async def get_xp_history(self, user_id: str, page: int = 1, per_page: int = 20) -> XPHistoryResponse:
        page = max(1, page)
        per_page = max(1, min(per_page, XP_HISTORY_MAX_PER_PAGE))
        grants, total = await self.store.list_grants(
            user_id, limit=per_page, offset=(page - 1) * per_page
        )
        return XPHistoryResponse(
            entries=[
                XPHistoryEntry(
                    amount=g.amount, reason=g.reason, source_ref=g.source_ref, created_at=g.created_at
                )
                for g in grants
            ],
            total=total,
            page=page,
            per_page=per_page,
        )

    # ── Achievements ──

    async def get_user_achievements(self, user_id: str) -> UserAchievements:
        return await self.achievements.get_user_achievements(user_id)

    async def get_recent_achievements(self, user_id: str, limit: int = 3) -> list[EarnedAchievement]:
        return await self.achievements.get_recent_achievements(user_id, limit)

    # ── Leaderboards ──

    async def get_leaderboard(
        self,
        period_type: str = "weekly",
        user_id: str | None = None,
        limit: int | None = None,
    ) -> LeaderboardData:
        return await self.leaderboards.get_leaderboard(period_type, user_id=user_id, limit=limit)

    async def get_class_leaderboard(
        self,
        class_id: str,
        period_type: str = "weekly",
        limit: int | None = None,
        user_id: str | None = None,
    ) -> LeaderboardData:
        return await self.leaderboards.get_class_leaderboard(
            class_id, period_type, limit=limit, user_id=user_id
        )

    def get_leaderboard_period_info(self, period_type: str = "weekly") -> PeriodInfo:
        return self.leaderboards.get_leaderboard_period_info(period_type)

    async def get_user_leaderboard_stats(self, user_id: str) -> UserLeaderboardStats:
        return await self.leaderboards.get_user_leaderboard_stats(user_id)

    # ── Daily quiz ──

    async def claim_daily_quiz(
        self,
        daily_quiz_id: str,
        *,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> bool:
        """Record one completion of a daily quiz per user or anonymous session.

        Returns False when this identity already completed it.
        """
        if user_id:
            identity = f"user:{user_id}"
        elif session_id:
            identity = f"session:{session_id}"
        else:
            raise InvalidQuizResultError("user_id or session_id is required")

        claimed = await self.store.insert_daily_completion_if_absent(
            identity, daily_quiz_id, now=self.clock()
        )
        await self.store.commit()
        if not claimed:
            logger.info("daily_quiz_already_completed", identity=identity, daily_quiz_id=daily_quiz_id)
        return claimed
