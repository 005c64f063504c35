"""Collaborator interfaces used by the gamification engine.

``GamificationStore`` is the only way engine code touches persistence.
Implementations must provide two guarantees the engine depends on:

* every ``insert_*_if_absent`` method is backed by a storage uniqueness
  constraint and reports ``False`` (never raises) when the row exists;
* ``increment_xp`` is a single atomic update at the storage layer.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Protocol


@dataclass(frozen=True)
class ProfileRecord:
    user_id: str
    total_xp: int = 0
    current_level: int = 1
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    quizzes_today: int = 0
    daily_goal: int = 3
    total_quizzes_completed: int = 0
    total_perfect_scores: int = 0


@dataclass(frozen=True)
class GrantRecord:
    user_id: str
    amount: int
    reason: str
    source_ref: str | None
    created_at: datetime


@dataclass(frozen=True)
class ActivityRecord:
    user_id: str
    attempt_id: str
    activity_date: date
    completed_hour: int
    score: int
    total_questions: int
    is_perfect: bool
    quizzes_today: int
    previous_streak: int
    streak_after: int
    longest_streak_after: int
    streak_outcome: str
    created_at: datetime


@dataclass(frozen=True)
class EarnedRecord:
    achievement_id: str
    earned_at: datetime


@dataclass(frozen=True)
class WindowRow:
    user_id: str
    xp_earned: int
    first_earned_at: datetime


@dataclass(frozen=True)
class LeaderboardWindow:
    rows: list[WindowRow]
    total_participants: int
    user_row: WindowRow | None = None
    user_rank: int | None = None


class GamificationStore(Protocol):
    """Persistence port for profiles, grants, achievements and activity."""

    async def get_profile(self, user_id: str) -> ProfileRecord | None: ...

    async def get_or_create_profile(
        self, user_id: str, *, daily_goal: int, now: datetime
    ) -> ProfileRecord: ...

    async def lock_profile(self, user_id: str) -> ProfileRecord: ...

    async def increment_xp(self, user_id: str, amount: int, *, now: datetime) -> int: ...

    async def set_level(self, user_id: str, level: int) -> None: ...

    async def insert_grant_if_absent(
        self,
        user_id: str,
        amount: int,
        reason: str,
        source_ref: str | None,
        *,
        now: datetime,
    ) -> bool: ...

    async def upsert_streak(
        self,
        user_id: str,
        *,
        current_streak: int,
        longest_streak: int,
        last_activity_date: date,
        quizzes_today: int,
        completed_delta: int,
        perfect_delta: int,
        now: datetime,
    ) -> None: ...

    async def set_daily_goal(self, user_id: str, daily_goal: int, *, now: datetime) -> None: ...

    async def insert_activity_if_absent(self, activity: ActivityRecord) -> bool: ...

    async def get_activity(self, user_id: str, attempt_id: str) -> ActivityRecord | None: ...

    async def count_time_of_day_completions(
        self, user_id: str, *, early_before_hour: int, late_from_hour: int
    ) -> tuple[int, int]: ...

    async def insert_achievement_if_absent(
        self, user_id: str, achievement_id: str, *, now: datetime
    ) -> bool: ...

    async def list_user_achievements(self, user_id: str) -> list[EarnedRecord]: ...

    async def list_grant_refs(self, user_id: str, reason: str, *, since: datetime) -> list[str]: ...

    async def list_grants(
        self, user_id: str, *, limit: int, offset: int
    ) -> tuple[list[GrantRecord], int]: ...

    async def sum_grants(self, user_id: str) -> int: ...

    async def read_leaderboard_window(
        self,
        starts_at: datetime,
        ends_at: datetime,
        *,
        limit: int,
        user_id: str | None = None,
        member_ids: Sequence[str] | None = None,
    ) -> LeaderboardWindow: ...

    async def insert_daily_completion_if_absent(
        self, identity: str, daily_quiz_id: str, *, now: datetime
    ) -> bool: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class ClassRoster(Protocol):
    """Enrollment collaborator: resolves a class to its student ids."""

    async def get_student_ids(self, class_id: str) -> list[str]: ...
