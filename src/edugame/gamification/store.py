"""SQLAlchemy implementation of the gamification store.

Uniqueness-guarded inserts use the dialect ``INSERT ... ON CONFLICT DO
NOTHING RETURNING id`` so a duplicate is reported as "no row returned"
instead of an ``IntegrityError`` that would poison the session. XP is
added with ``UPDATE ... SET total_xp = total_xp + :amount RETURNING``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime, timezone

from sqlalchemy import and_, case, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from edugame.db.models import (
    DailyQuizCompletion,
    QuizActivity,
    UserAchievement,
    UserGamification,
    XPGrant,
)
from edugame.gamification.errors import StoreError
from edugame.gamification.ports import (
    ActivityRecord,
    EarnedRecord,
    GrantRecord,
    LeaderboardWindow,
    ProfileRecord,
    WindowRow,
)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _utc(dt: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _to_profile(row: UserGamification) -> ProfileRecord:
    return ProfileRecord(
        user_id=row.user_id,
        total_xp=row.total_xp,
        current_level=row.current_level,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_activity_date=row.last_activity_date,
        quizzes_today=row.quizzes_today,
        daily_goal=row.daily_goal,
        total_quizzes_completed=row.total_quizzes_completed,
        total_perfect_scores=row.total_perfect_scores,
    )


def _to_activity(row: QuizActivity) -> ActivityRecord:
    return ActivityRecord(
        user_id=row.user_id,
        attempt_id=row.attempt_id,
        activity_date=row.activity_date,
        completed_hour=row.completed_hour,
        score=row.score,
        total_questions=row.total_questions,
        is_perfect=row.is_perfect,
        quizzes_today=row.quizzes_today,
        previous_streak=row.previous_streak,
        streak_after=row.streak_after,
        longest_streak_after=row.longest_streak_after,
        streak_outcome=row.streak_outcome,
        created_at=_utc(row.created_at),
    )


class SqlAlchemyGamificationStore:
    """GamificationStore over one ``AsyncSession`` (PostgreSQL or SQLite)."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        dialect = session.get_bind().dialect.name
        if dialect not in _INSERTS:
            msg = f"Unsupported dialect for idempotent inserts: {dialect}"
            raise StoreError(msg)
        self._insert = _INSERTS[dialect]

    # ── Profile ──

    async def get_profile(self, user_id: str) -> ProfileRecord | None:
        result = await self.session.execute(
            select(UserGamification)
            .where(UserGamification.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _to_profile(row) if row else None

    async def get_or_create_profile(
        self, user_id: str, *, daily_goal: int, now: datetime
    ) -> ProfileRecord:
        stmt = (
            self._insert(UserGamification)
            .values(
                user_id=user_id,
                total_xp=0,
                current_level=1,
                current_streak=0,
                longest_streak=0,
                quizzes_today=0,
                daily_goal=daily_goal,
                total_quizzes_completed=0,
                total_perfect_scores=0,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        await self.session.execute(stmt)
        profile = await self.get_profile(user_id)
        if profile is None:  # pragma: no cover - insert above guarantees a row
            msg = f"Profile for {user_id} vanished after upsert"
            raise StoreError(msg)
        return profile

    async def lock_profile(self, user_id: str) -> ProfileRecord:
        # FOR UPDATE is a no-op on SQLite, which serializes writers anyway
        result = await self.session.execute(
            select(UserGamification)
            .where(UserGamification.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return _to_profile(result.scalar_one())

    async def increment_xp(self, user_id: str, amount: int, *, now: datetime) -> int:
        result = await self.session.execute(
            update(UserGamification)
            .where(UserGamification.user_id == user_id)
            .values(total_xp=UserGamification.total_xp + amount, updated_at=now)
            .returning(UserGamification.total_xp)
            .execution_options(synchronize_session=False)
        )
        return int(result.scalar_one())

    async def set_level(self, user_id: str, level: int) -> None:
        await self.session.execute(
            update(UserGamification)
            .where(UserGamification.user_id == user_id)
            .values(current_level=level)
            .execution_options(synchronize_session=False)
        )

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
    ) -> None:
        await self.session.execute(
            update(UserGamification)
            .where(UserGamification.user_id == user_id)
            .values(
                current_streak=current_streak,
                longest_streak=longest_streak,
                last_activity_date=last_activity_date,
                quizzes_today=quizzes_today,
                total_quizzes_completed=UserGamification.total_quizzes_completed + completed_delta,
                total_perfect_scores=UserGamification.total_perfect_scores + perfect_delta,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

    async def set_daily_goal(self, user_id: str, daily_goal: int, *, now: datetime) -> None:
        await self.session.execute(
            update(UserGamification)
            .where(UserGamification.user_id == user_id)
            .values(daily_goal=daily_goal, updated_at=now)
            .execution_options(synchronize_session=False)
        )

    # ── XP grants ──

    async def insert_grant_if_absent(
        self,
        user_id: str,
        amount: int,
        reason: str,
        source_ref: str | None,
        *,
        now: datetime,
    ) -> bool:
        stmt = (
            self._insert(XPGrant)
            .values(
                user_id=user_id,
                amount=amount,
                reason=reason,
                source_ref=source_ref,
                created_at=now,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "reason", "source_ref"])
            .returning(XPGrant.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_grant_refs(self, user_id: str, reason: str, *, since: datetime) -> list[str]:
        result = await self.session.execute(
            select(XPGrant.source_ref).where(
                XPGrant.user_id == user_id,
                XPGrant.reason == reason,
                XPGrant.created_at >= since,
                XPGrant.source_ref.is_not(None),
            )
        )
        return [ref for ref in result.scalars()]

    async def list_grants(
        self, user_id: str, *, limit: int, offset: int
    ) -> tuple[list[GrantRecord], int]:
        total = await self.session.scalar(
            select(func.count(XPGrant.id)).where(XPGrant.user_id == user_id)
        )
        result = await self.session.execute(
            select(XPGrant)
            .where(XPGrant.user_id == user_id)
            .order_by(XPGrant.created_at.desc(), XPGrant.id.desc())
            .limit(limit)
            .offset(offset)
        )
        grants = [
            GrantRecord(
                user_id=g.user_id,
                amount=g.amount,
                reason=g.reason,
                source_ref=g.source_ref,
                created_at=_utc(g.created_at),
            )
            for g in result.scalars()
        ]
        return grants, int(total or 0)

    async def sum_grants(self, user_id: str) -> int:
        total = await self.session.scalar(
            select(func.coalesce(func.sum(XPGrant.amount), 0)).where(XPGrant.user_id == user_id)
        )
        return int(total or 0)

    # ── Quiz activity ──

    async def insert_activity_if_absent(self, activity: ActivityRecord) -> bool:
        stmt = (
            self._insert(QuizActivity)
            .values(
                user_id=activity.user_id,
                attempt_id=activity.attempt_id,
                activity_date=activity.activity_date,
                completed_hour=activity.completed_hour,
                score=activity.score,
                total_questions=activity.total_questions,
                is_perfect=activity.is_perfect,
                quizzes_today=activity.quizzes_today,
                previous_streak=activity.previous_streak,
                streak_after=activity.streak_after,
                longest_streak_after=activity.longest_streak_after,
                streak_outcome=activity.streak_outcome,
                created_at=activity.created_at,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "attempt_id"])
            .returning(QuizActivity.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_activity(self, user_id: str, attempt_id: str) -> ActivityRecord | None:
        result = await self.session.execute(
            select(QuizActivity).where(
                QuizActivity.user_id == user_id,
                QuizActivity.attempt_id == attempt_id,
            )
        )
        row = result.scalar_one_or_none()
        return _to_activity(row) if row else None

    async def count_time_of_day_completions(
        self, user_id: str, *, early_before_hour: int, late_from_hour: int
    ) -> tuple[int, int]:
        result = await self.session.execute(
            select(
                func.coalesce(func.sum(case((QuizActivity.completed_hour < early_before_hour, 1), else_=0)), 0),
                func.coalesce(func.sum(case((QuizActivity.completed_hour >= late_from_hour, 1), else_=0)), 0),
            ).where(QuizActivity.user_id == user_id)
        )
        early, late = result.one()
        return int(early), int(late)

    # ── Achievements ──

    async def insert_achievement_if_absent(
        self, user_id: str, achievement_id: str, *, now: datetime
    ) -> bool:
        stmt = (
            self._insert(UserAchievement)
            .values(user_id=user_id, achievement_id=achievement_id, earned_at=now)
            .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
            .returning(UserAchievement.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def list_user_achievements(self, user_id: str) -> list[EarnedRecord]:
        result = await self.session.execute(
            select(UserAchievement.achievement_id, UserAchievement.earned_at)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.earned_at.desc(), UserAchievement.id.desc())
        )
        return [EarnedRecord(achievement_id=a, earned_at=_utc(e)) for a, e in result]

    # ── Leaderboards ──

    async def read_leaderboard_window(
        self,
        starts_at: datetime,
        ends_at: datetime,
        *,
        limit: int,
        user_id: str | None = None,
        member_ids: Sequence[str] | None = None,
    ) -> LeaderboardWindow:
        xp_earned = func.sum(XPGrant.amount)
        base = select(
            XPGrant.user_id.label("user_id"),
            xp_earned.label("xp_earned"),
            func.min(XPGrant.created_at).label("first_earned_at"),
        ).where(XPGrant.created_at >= starts_at, XPGrant.created_at < ends_at)
        if member_ids is not None:
            base = base.where(XPGrant.user_id.in_(list(member_ids)))
        agg = base.group_by(XPGrant.user_id).having(xp_earned > 0).subquery()

        page = await self.session.execute(
            select(agg.c.user_id, agg.c.xp_earned, agg.c.first_earned_at)
            .order_by(agg.c.xp_earned.desc(), agg.c.first_earned_at.asc(), agg.c.user_id.asc())
            .limit(limit)
        )
        rows = [
            WindowRow(user_id=uid, xp_earned=int(xp), first_earned_at=_utc(first))
            for uid, xp, first in page
        ]
        total = await self.session.scalar(select(func.count()).select_from(agg))

        user_row: WindowRow | None = None
        user_rank: int | None = None
        if user_id is not None:
            mine = (
                await self.session.execute(
                    select(agg.c.xp_earned, agg.c.first_earned_at).where(agg.c.user_id == user_id)
                )
            ).one_or_none()
            if mine is not None:
                my_xp, my_first = mine
                ahead = await self.session.scalar(
                    select(func.count()).select_from(agg).where(
                        or_(
                            agg.c.xp_earned > my_xp,
                            and_(agg.c.xp_earned == my_xp, agg.c.first_earned_at < my_first),
                            and_(
                                agg.c.xp_earned == my_xp,
                                agg.c.first_earned_at == my_first,
                                agg.c.user_id < user_id,
                            ),
                        )
                    )
                )
                user_row = WindowRow(user_id=user_id, xp_earned=int(my_xp), first_earned_at=_utc(my_first))
                user_rank = int(ahead or 0) + 1

        return LeaderboardWindow(
            rows=rows,
            total_participants=int(total or 0),
            user_row=user_row,
            user_rank=user_rank,
        )

    # ── Daily quiz identity ──

    async def insert_daily_completion_if_absent(
        self, identity: str, daily_quiz_id: str, *, now: datetime
    ) -> bool:
        stmt = (
            self._insert(DailyQuizCompletion)
            .values(identity=identity, daily_quiz_id=daily_quiz_id, completed_at=now)
            .on_conflict_do_nothing(index_elements=["identity", "daily_quiz_id"])
            .returning(DailyQuizCompletion.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    # ── Transactions ──

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
