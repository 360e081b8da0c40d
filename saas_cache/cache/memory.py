"""In-memory cache provider.

Process-local dict of key -> (encoded value, expiry).  Fine for tests,
local dev and single-process deployments.

LIMITATION FOR PRODUCTION:
Every API instance has its own dict.  A pattern invalidation issued on
instance A does not reach instance B, so B keeps serving the old
subscription until its TTL runs out.  Multi-instance deployments must
use the Redis provider.

Expired entries are evicted lazily on read and by a periodic purge task
started in ``initialize()`` so that keys nobody reads again do not pile
up forever.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Any

from saas_cache.cache import patterns
from saas_cache.cache.base import MISS, CacheStats, decode_value, encode_value

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class InMemoryCacheProvider:
    name = "memory"

    def __init__(
        self,
        *,
        clock: Clock = time.monotonic,
        purge_interval_seconds: float | None = 60.0,
    ) -> None:
        # key -> (json text, absolute expiry on `clock`, or None for no expiry)
        self._store: dict[str, tuple[str, float | None]] = {}
        self._clock = clock
        self._purge_interval = purge_interval_seconds
        self._purge_task: asyncio.Task[None] | None = None
        self._hits = 0
        self._misses = 0

    async def initialize(self) -> None:
        if self._purge_interval and self._purge_task is None:
            self._purge_task = asyncio.create_task(self._purge_loop(self._purge_interval))
        logger.info("In-memory cache provider initialized")

    async def close(self) -> None:
        if self._purge_task is not None:
            self._purge_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._purge_task
            self._purge_task = None
        self._store.clear()

    async def ping(self) -> bool:
        return True

    def _is_expired(self, expires_at: float | None) -> bool:
        return expires_at is not None and expires_at <= self._clock()

    def _live_entry(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if self._is_expired(expires_at):
            del self._store[key]
            logger.debug("Cache EXPIRED: %s", key)
            return None
        return raw

    async def get(self, key: str) -> Any:
        raw = self._live_entry(key)
        if raw is None:
            self._misses += 1
            return MISS
        self._hits += 1
        return decode_value(key, raw)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        raw = encode_value(key, value)
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._store[key] = (raw, expires_at)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def delete_pattern(self, pattern: str) -> int:
        regex = patterns.compile_pattern(pattern)
        doomed = [k for k in self._store if regex.match(k)]
        removed = 0
        for k in doomed:
            _, expires_at = self._store.pop(k)
            # Expired entries are already gone as far as readers can tell
            if not self._is_expired(expires_at):
                removed += 1
        return removed

    async def clear(self) -> int:
        removed = len(self._store)
        self._store.clear()
        await self.reset_stats()
        logger.warning("In-memory cache cleared: %d entries removed", removed)
        return removed

    async def get_stats(self) -> CacheStats:
        self.purge_expired()
        return CacheStats(hits=self._hits, misses=self._misses, keys=len(self._store))

    async def reset_stats(self) -> None:
        self._hits = 0
        self._misses = 0

    def purge_expired(self) -> int:
        expired = [k for k, (_, exp) in self._store.items() if self._is_expired(exp)]
        for k in expired:
            del self._store[k]
        return len(expired)

    async def _purge_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.purge_expired()
            if removed:
                logger.debug("Cache purge: %d expired entries removed", removed)
