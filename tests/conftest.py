"""Shared test fixtures.

Integration tests run the SQLAlchemy store against a throwaway SQLite file
per test, so no database server is needed.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from edugame.config import Settings
from edugame.database import close_db, create_schema, get_engine, init_db
from edugame.gamification.roster import StaticClassRoster
from edugame.gamification.service import GamificationFacade
from edugame.gamification.store import SqlAlchemyGamificationStore


class FixedClock:
    """Controllable server clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        leaderboard_cache_ttl_seconds=30,
    )


@pytest.fixture
def clock() -> FixedClock:
    # Wednesday
    return FixedClock(datetime(2026, 2, 25, 14, 0, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'edugame.db'}")
    await create_schema()
    yield get_engine()
    await close_db()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(db_session: AsyncSession) -> SqlAlchemyGamificationStore:
    return SqlAlchemyGamificationStore(db_session)


@pytest.fixture
def roster() -> StaticClassRoster:
    return StaticClassRoster({"class-a": ["alice", "bob"], "class-empty": []})


@pytest_asyncio.fixture
async def facade(store, roster, clock, settings) -> GamificationFacade:
    return GamificationFacade(store, roster=roster, clock=clock, settings=settings)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
