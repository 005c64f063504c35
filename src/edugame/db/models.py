"""ORM models for the gamification engine.

Idempotency is enforced by the unique constraints declared here; the
service layer relies on ``ON CONFLICT DO NOTHING`` against them rather than
on select-then-insert checks.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from edugame.db.base import Base

# SQLite only auto-increments INTEGER PRIMARY KEY columns
_BigId = BigInteger().with_variant(Integer, "sqlite")


class UserGamification(Base):
    """Denormalized gamification profile — single row per user, O(1) reads."""

    __tablename__ = "user_gamification"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    total_xp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    quizzes_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    daily_goal: Mapped[int] = mapped_column(Integer, nullable=False, default=3, server_default="3")
    total_quizzes_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    total_perfect_scores: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class XPGrant(Base):
    """Append-only XP log. UNIQUE(user_id, reason, source_ref) is the idempotency key."""

    __tablename__ = "xp_grants"
    __table_args__ = (
        UniqueConstraint("user_id", "reason", "source_ref", name="xp_grants_user_reason_source_key"),
        CheckConstraint("amount >= 0", name="xp_grants_amount_non_negative"),
        Index("ix_xp_grants_created_at_user", "created_at", "user_id"),
    )

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    source_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UserAchievement(Base):
    """Achievements earned by users — UNIQUE(user_id, achievement_id) prevents duplicates."""

    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="user_achievements_user_id_achievement_id_key"),
    )

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class QuizActivity(Base):
    """One row per processed quiz attempt; gates the counter and streak update."""

    __tablename__ = "quiz_activity"
    __table_args__ = (
        UniqueConstraint("user_id", "attempt_id", name="quiz_activity_user_id_attempt_id_key"),
    )

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    attempt_id: Mapped[str] = mapped_column(String(128), nullable=False)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    is_perfect: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quizzes_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    previous_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class DailyQuizCompletion(Base):
    """At most one scored daily-quiz attempt per identity (user or anonymous session)."""

    __tablename__ = "daily_quiz_completions"
    __table_args__ = (
        UniqueConstraint("identity", "daily_quiz_id", name="daily_quiz_completions_identity_quiz_key"),
    )

    id: Mapped[int] = mapped_column(_BigId, primary_key=True, autoincrement=True)
    identity: Mapped[str] = mapped_column(String(160), nullable=False)
    daily_quiz_id: Mapped[str] = mapped_column(String(128), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
