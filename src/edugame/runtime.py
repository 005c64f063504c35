"""Process lifecycle and facade construction.

``lifespan`` opens the shared database engine and Redis client from
``Settings`` and closes them on exit. Inside it, ``open_facade`` hands out
a ``GamificationFacade`` bound to one session from the shared pool::

    async with lifespan(settings):
        async with open_facade(roster=roster) as facade:
            await facade.process_quiz_completion(user_id, 8, 10, attempt_id)
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing, asynccontextmanager
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from edugame.config import Settings, get_settings
from edugame.database import close_db, create_schema, get_session, init_db
from edugame.gamification.periods import utc_now
from edugame.gamification.ports import ClassRoster
from edugame.gamification.service import GamificationFacade
from edugame.gamification.store import SqlAlchemyGamificationStore
from edugame.logging_config import setup_logging
from edugame.redis_client import close_redis, get_optional_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncGenerator[Settings, None]:
    """Startup and shutdown lifecycle."""
    settings = settings or get_settings()
    setup_logging(settings)
    await init_db(settings.database_url, echo=settings.database_echo)
    if settings.database_create_schema:
        await create_schema()
    redis = await init_redis(settings.redis_url, max_connections=settings.redis_max_connections)
    logger.info("edugame_started", cache_enabled=redis is not None)

    try:
        yield settings
    finally:
        await close_db()
        await close_redis()
        logger.info("edugame_stopped")


def create_facade(
    session: AsyncSession,
    settings: Settings | None = None,
    *,
    roster: ClassRoster | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> GamificationFacade:
    """Build a facade over ``session`` using the shared cache client, if any."""
    return GamificationFacade(
        SqlAlchemyGamificationStore(session),
        redis=get_optional_redis(),
        roster=roster,
        clock=clock,
        settings=settings or get_settings(),
    )


@asynccontextmanager
async def open_facade(
    settings: Settings | None = None,
    *,
    roster: ClassRoster | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AsyncGenerator[GamificationFacade, None]:
    """Yield a facade on a fresh session; the session closes on exit."""
    async with aclosing(get_session()) as sessions:
        async for session in sessions:
            yield create_facade(session, settings, roster=roster, clock=clock)
