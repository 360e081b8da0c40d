"""Redis client construction.

The client is built from Settings at startup rather than at import time,
so importing any module in this package never opens a connection or
reads configuration it does not need.

Timeouts matter more than usual here: the cache sits in front of every
hot read.  A Redis that accepts TCP connections but never answers would
otherwise stall each request until the outer HTTP timeout fires.  With a
bounded socket timeout the provider raises, the cache service treats
that as a miss, and the request falls through to the database.
"""

from __future__ import annotations

import redis.asyncio as aioredis

from saas_cache.core.config import Settings


def create_redis_client(settings: Settings) -> aioredis.Redis:  # type: ignore[type-arg]
    if settings.redis_url is None:
        raise ValueError("REDIS_URL is not configured")
    return aioredis.from_url(
        settings.redis_url,
        decode_responses=True,  # cache values are JSON text
        max_connections=20,
        socket_timeout=settings.cache_timeout_seconds,
        socket_connect_timeout=settings.cache_timeout_seconds,
        health_check_interval=30,
    )
