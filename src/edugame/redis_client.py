"""Shared Redis client for the leaderboard page cache.

The cache is optional. With an empty URL no client is created and
leaderboards are read straight from the database.
"""

import redis.asyncio as aioredis
import structlog

logger = structlog.get_logger()

_client: aioredis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> aioredis.Redis | None:
    """Create the shared client, or disable the cache when ``url`` is empty.

    Connections are opened lazily, on the first command.
    """
    global _client  # noqa: PLW0603
    if not url:
        logger.info("leaderboard_cache_disabled")
        _client = None
        return None
    _client = aioredis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_optional_redis() -> aioredis.Redis | None:
    """The shared client, or None when the cache is disabled."""
    return _client


def get_redis() -> aioredis.Redis:
    if _client is None:
        msg = "Redis not initialized. Call init_redis() with a URL first."
        raise RuntimeError(msg)
    return _client
