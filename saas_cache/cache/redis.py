"""Redis-backed cache provider, shared by every API instance.

Every key is stored under a namespace prefix (``cache:`` by default) so
that cache maintenance never touches rate-limit counters, job state or
anything else living in the same Redis database.

WHY SCAN INSTEAD OF KEYS
------------------------
The first version of pattern invalidation used ``KEYS pattern``.  KEYS
walks the entire keyspace in one blocking call; on a shared production
store with millions of keys that freezes Redis for every tenant while it
runs.  SCAN is cursor-based: each call returns a bounded batch plus a
cursor, Redis serves other clients between batches, and iteration ends
when the cursor comes back to 0.  SCAN may return a key twice or miss a
key created mid-iteration.  Both are harmless for invalidation: DEL of a
missing key is a no-op, and a key created after the write committed
already holds fresh data.

Hit/miss counters live in a small Redis hash so that the admin stats
endpoint reports the fleet-wide picture, not one instance's view.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from typing import Any

from redis.exceptions import RedisError

from saas_cache.cache import patterns
from saas_cache.cache.base import (
    MISS,
    CacheProviderError,
    CacheStats,
    decode_value,
    encode_value,
)

logger = logging.getLogger(__name__)


class RedisCacheProvider:
    name = "redis"

    def __init__(
        self,
        redis_client,
        *,
        prefix: str = "cache:",
        scan_count: int = 100,
        stats_key: str | None = None,
    ) -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._scan_count = scan_count
        # Outside the prefix so that scans over our keys never see it
        self._stats_key = stats_key or f"{prefix.rstrip(':') or 'cache'}-stats"

    @contextlib.contextmanager
    def _translate(self, operation: str) -> Iterator[None]:
        """Surface transport failures as CacheProviderError."""
        try:
            yield
        except (RedisError, OSError, TimeoutError) as exc:
            raise CacheProviderError(operation, f"{type(exc).__name__}: {exc}") from exc

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def initialize(self) -> None:
        with self._translate("initialize"):
            await self._redis.ping()
        logger.info("Redis cache provider initialized  prefix=%s", self._prefix)

    async def close(self) -> None:
        with self._translate("close"):
            await self._redis.aclose()

    async def ping(self) -> bool:
        with self._translate("ping"):
            return bool(await self._redis.ping())

    async def get(self, key: str) -> Any:
        with self._translate("get"):
            raw = await self._redis.get(self._k(key))
        await self._record("misses" if raw is None else "hits")
        if raw is None:
            return MISS
        return decode_value(key, raw)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        raw = encode_value(key, value)
        with self._translate("set"):
            if ttl_seconds is None:
                await self._redis.set(self._k(key), raw)
            else:
                # SET with EX writes value and TTL atomically; a separate
                # EXPIRE could be lost and leave an immortal key behind.
                await self._redis.set(self._k(key), raw, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        with self._translate("delete"):
            await self._redis.delete(self._k(key))

    async def has(self, key: str) -> bool:
        with self._translate("has"):
            return bool(await self._redis.exists(self._k(key)))

    async def delete_pattern(self, pattern: str) -> int:
        base, segment = patterns.split_segment_wildcard(pattern)
        globs = patterns.to_scan_globs(pattern, self._prefix)
        deleted = 0
        with self._translate("delete_pattern"):
            if "*" not in base:
                # The base key is literal: one DEL instead of a scan
                deleted += await self._redis.delete(self._k(base))
                globs = globs[:1] if segment else []
            for glob in globs:
                deleted += await self._scan_delete(glob)
        logger.debug("Cache INVALIDATE PATTERN: %s (%d keys removed)", pattern, deleted)
        return deleted

    async def clear(self) -> int:
        with self._translate("clear"):
            removed = await self._scan_delete(patterns.to_scan_globs("*", self._prefix)[0])
            await self._redis.delete(self._stats_key)
        logger.warning("Redis cache cleared: %d entries removed", removed)
        return removed

    async def get_stats(self) -> CacheStats:
        with self._translate("get_stats"):
            counters = await self._redis.hgetall(self._stats_key) or {}
            keys = 0
            async for _ in self._iter_keys(patterns.to_scan_globs("*", self._prefix)[0]):
                keys += 1
        return CacheStats(
            hits=int(counters.get("hits", 0)),
            misses=int(counters.get("misses", 0)),
            keys=keys,
        )

    async def reset_stats(self) -> None:
        with self._translate("reset_stats"):
            await self._redis.delete(self._stats_key)

    async def _iter_keys(self, glob: str):
        cursor = 0
        while True:
            cursor, batch = await self._redis.scan(
                cursor, match=glob, count=self._scan_count
            )
            for k in batch:
                yield k
            if int(cursor) == 0:
                break

    async def _scan_delete(self, glob: str) -> int:
        deleted = 0
        cursor = 0
        while True:
            cursor, batch = await self._redis.scan(
                cursor, match=glob, count=self._scan_count
            )
            if batch:
                deleted += await self._redis.delete(*batch)
            if int(cursor) == 0:
                break
        return deleted

    async def _record(self, field: str) -> None:
        # Stats are advisory; losing an increment must not fail the read
        try:
            await self._redis.hincrby(self._stats_key, field, 1)
        except (RedisError, OSError, TimeoutError) as exc:
            logger.debug("Failed to record cache %s: %s", field, exc)
