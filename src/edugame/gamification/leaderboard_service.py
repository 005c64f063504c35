"""Periodic XP leaderboards.

Rankings are computed from xp_grants inside the current weekly or monthly
window, so a leaderboard never needs a separate counter that could drift
from the ledger. When Redis is available the ranked page is cached for a
few seconds; the caller's own position is always read from the database.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from datetime import datetime

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from edugame.config import Settings, get_settings
from edugame.gamification.errors import GamificationError
from edugame.gamification.periods import LEADERBOARD_TYPES, get_period_info, utc_now
from edugame.gamification.ports import ClassRoster, GamificationStore, LeaderboardWindow, WindowRow
from edugame.gamification.schemas import (
    LeaderboardData,
    LeaderboardEntry,
    PeriodInfo,
    UserLeaderboardStats,
)

logger = structlog.get_logger()

LEADERBOARD_CACHE_KEY = "leaderboard:{type}:{scope}:{period_start}:{limit}"


def _entry(rank: int, row: WindowRow, user_id: str | None) -> LeaderboardEntry:
    return LeaderboardEntry(
        rank=rank,
        user_id=row.user_id,
        xp_earned=row.xp_earned,
        first_earned_at=row.first_earned_at,
        is_current_user=row.user_id == user_id,
    )


class LeaderboardService:
    """Weekly and monthly rankings, globally or scoped to a class."""

    def __init__(
        self,
        store: GamificationStore,
        *,
        redis: aioredis.Redis | None = None,
        roster: ClassRoster | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.redis = redis
        self.roster = roster
        self.settings = settings or get_settings()
        self.clock = clock

    def clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            limit = self.settings.leaderboard_default_limit
        return max(1, min(limit, self.settings.leaderboard_max_limit))

    def get_leaderboard_period_info(self, period_type: str = "weekly") -> PeriodInfo:
        return get_period_info(period_type, self.clock(), self.settings.leaderboard_week_start)

    async def get_leaderboard(
        self,
        period_type: str = "weekly",
        user_id: str | None = None,
        limit: int | None = None,
    ) -> LeaderboardData:
        period = self.get_leaderboard_period_info(period_type)
        return await self._ranked(period, "global", self.clamp_limit(limit), user_id, None)

    async def get_class_leaderboard(
        self,
        class_id: str,
        period_type: str = "weekly",
        limit: int | None = None,
        user_id: str | None = None,
    ) -> LeaderboardData:
        if self.roster is None:
            raise GamificationError("Class leaderboards need a class roster")
        period = self.get_leaderboard_period_info(period_type)
        scope = f"class:{class_id}"

        member_ids = await self.roster.get_student_ids(class_id)
        if not member_ids:
            return LeaderboardData(scope=scope)
        return await self._ranked(period, scope, self.clamp_limit(limit), user_id, member_ids)

    async def get_user_leaderboard_stats(self, user_id: str) -> UserLeaderboardStats:
        """The user's weekly and monthly global rank and XP, without loading any page."""
        stats: dict[str, int | None] = {}
        for period_type in LEADERBOARD_TYPES:
            period = self.get_leaderboard_period_info(period_type)
            window = await self.store.read_leaderboard_window(
                period.starts_at, period.ends_at, limit=0, user_id=user_id
            )
            stats[f"{period_type}_rank"] = window.user_rank
            stats[f"{period_type}_xp"] = window.user_row.xp_earned if window.user_row else 0
        return UserLeaderboardStats(**stats)

    async def _ranked(
        self,
        period: PeriodInfo,
        scope: str,
        limit: int,
        user_id: str | None,
        member_ids: Sequence[str] | None,
    ) -> LeaderboardData:
        cache_key = LEADERBOARD_CACHE_KEY.format(
            type=period.period_type,
            scope=scope,
            period_start=period.period_start.isoformat(),
            limit=limit,
        )

        cached = await self._cache_get(cache_key)
        if cached is not None:
            entries = [LeaderboardEntry.model_validate(e) for e in cached["entries"]]
            total = int(cached["total_participants"])
            user_entry: LeaderboardEntry | None = None
            if user_id is not None:
                entries = [e.model_copy(update={"is_current_user": e.user_id == user_id}) for e in entries]
                user_entry = next((e for e in entries if e.is_current_user), None)
                if user_entry is None:
                    window = await self.store.read_leaderboard_window(
                        period.starts_at, period.ends_at, limit=0, user_id=user_id, member_ids=member_ids
                    )
                    if window.user_row is not None and window.user_rank is not None:
                        user_entry = _entry(window.user_rank, window.user_row, user_id)
        else:
            window = await self.store.read_leaderboard_window(
                period.starts_at, period.ends_at, limit=limit, user_id=user_id, member_ids=member_ids
            )
            entries = [_entry(rank, row, user_id) for rank, row in enumerate(window.rows, start=1)]
            total = window.total_participants
            user_entry = self._user_entry(window, user_id)
            if entries:
                await self._cache_set(
                    cache_key,
                    {
                        "entries": [
                            e.model_dump(mode="json", exclude={"is_current_user"}) for e in entries
                        ],
                        "total_participants": total,
                    },
                )

        if not entries:
            return LeaderboardData(scope=scope)

        return LeaderboardData(
            period=period,
            scope=scope,
            entries=entries,
            total_participants=total,
            user_rank=user_entry.rank if user_entry else None,
            user_entry=user_entry,
        )

    @staticmethod
    def _user_entry(window: LeaderboardWindow, user_id: str | None) -> LeaderboardEntry | None:
        if user_id is None or window.user_row is None or window.user_rank is None:
            return None
        return _entry(window.user_rank, window.user_row, user_id)

    async def _cache_get(self, key: str) -> dict | None:
        if self.redis is None:
            return None
        try:
            raw = await self.redis.get(key)
        except (RedisError, OSError):
            logger.warning("leaderboard_cache_read_failed", key=key, exc_info=True)
            return None
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("leaderboard_cache_corrupt", key=key)
            return None

    async def _cache_set(self, key: str, payload: dict) -> None:
        if self.redis is None:
            return
        try:
            await self.redis.setex(key, self.settings.leaderboard_cache_ttl_seconds, json.dumps(payload))
        except (RedisError, OSError):
            logger.warning("leaderboard_cache_write_failed", key=key, exc_info=True)
