"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a shared connection pool is
created at import time; otherwise ``redis_pool`` is None and the code store
falls back to another backend.

Every redis-py call made through this pool is bounded by
``socket_timeout``, so a hung Redis turns into a RedisError (and from there
StorageUnavailable) instead of a request that never returns.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from authcode.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
        socket_timeout=SETTINGS.store_timeout_sec,
        socket_connect_timeout=SETTINGS.store_timeout_sec,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis; mirrors lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; codes are not stored in Redis")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Keep serving: /ready reports the outage and each store call fails
        # with StorageUnavailable until Redis comes back.
        logger.exception("Redis connection failed on startup")

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
