"""Pydantic result models returned by the gamification engine."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

# --- XP ---


class XPBreakdownItem(BaseModel):
    reason: str
    amount: int
    source_ref: str | None = None


class XPAwardResult(BaseModel):
    new_total_xp: int
    new_level: int
    previous_level: int
    leveled_up: bool = False
    amount_awarded: int = 0
    duplicate: bool = False


class LevelInfo(BaseModel):
    level: int
    title: str
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_title: str
    progress_percent: int


class XPHistoryEntry(BaseModel):
    amount: int
    reason: str
    source_ref: str | None = None
    created_at: datetime


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int


# --- Streak ---


class StreakUpdateResult(BaseModel):
    previous_streak: int
    new_streak: int
    longest_streak: int
    outcome: str  # started | continued | already_counted | reset
    streak_maintained: bool

    @property
    def streak_broken(self) -> bool:
        return self.outcome == "reset"

    @property
    def streak_started(self) -> bool:
        return self.outcome in ("started", "reset")


class StreakStatus(BaseModel):
    current_streak: int
    longest_streak: int
    effective_streak: int
    is_active_today: bool
    will_expire_today: bool
    last_activity_date: date | None = None


class DailyProgress(BaseModel):
    quizzes_today: int
    daily_goal: int
    goal_met: bool
    progress_percent: int


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    xp_reward: int


class EarnedAchievement(BaseModel):
    achievement: AchievementResponse
    earned_at: datetime


class AchievementProgress(BaseModel):
    achievement_id: str
    current: int
    required: int


class UserAchievements(BaseModel):
    earned: list[EarnedAchievement]
    available: list[AchievementResponse]
    progress: list[AchievementProgress]


class NewAchievement(BaseModel):
    achievement: AchievementResponse
    xp_awarded: int


# --- Stats ---


class GamificationStats(BaseModel):
    total_xp: int
    current_level: int
    current_streak: int
    longest_streak: int
    quizzes_today: int
    daily_goal: int
    daily_goal_met: bool = False
    total_quizzes_completed: int = 0
    total_perfect_scores: int = 0
    daily_goal_streak: int = 0
    level_info: LevelInfo
    recent_achievements: list[EarnedAchievement] = []


# --- Leaderboards ---


class PeriodInfo(BaseModel):
    period_type: str
    key: str
    period_start: date
    period_end: date  # last day inside the window
    starts_at: datetime
    ends_at: datetime  # exclusive
    days_remaining: int
    seconds_remaining: int


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    xp_earned: int
    first_earned_at: datetime | None = None
    is_current_user: bool = False


class LeaderboardData(BaseModel):
    period: PeriodInfo | None = None
    scope: str = "global"
    entries: list[LeaderboardEntry] = []
    total_participants: int = 0
    user_rank: int | None = None
    user_entry: LeaderboardEntry | None = None


class UserLeaderboardStats(BaseModel):
    weekly_rank: int | None = None
    weekly_xp: int = 0
    monthly_rank: int | None = None
    monthly_xp: int = 0


# --- Quiz completion ---


class QuizCompletionResult(BaseModel):
    total_xp_awarded: int
    new_total_xp: int
    previous_level: int
    new_level: int
    leveled_up: bool
    breakdown: list[XPBreakdownItem]
    streak: StreakUpdateResult | None = None
    daily_goal_met: bool = False
    new_achievements: list[NewAchievement] = []
    failed_step: str | None = None
    error: str | None = None
