"""Cache service: the façade the rest of the application talks to.

LOAD-THROUGH (get_or_set)
-------------------------
  Client -> cache -> hit  -> return (loader never runs)
  Client -> cache -> miss -> loader() -> store with TTL -> return

The cache is strictly an optimization over an authoritative database.
Nothing in this module is allowed to turn a cache problem into a caller
problem:

  * Read paths fail OPEN.  A store that is down, or an entry that cannot
    be decoded, is treated as a miss and the loader runs.
  * Write and invalidation paths fail SOFT.  The failure is logged with
    the key or pattern and swallowed, so a cache outage never aborts or
    rolls back the business operation that triggered the invalidation.

The only exception a ``get_or_set`` caller can see is one raised by its
own loader.

Two expiry mechanisms work together.  Explicit invalidation after a
write gives near-instant consistency; the TTL is the safety net for the
write path that forgot to invalidate.

KNOWN LIMITATION: no stampede protection.  Concurrent misses on the same
key each run the loader and each store a result; the last SET wins.
Loaders are idempotent reads, so this costs duplicate work, not
correctness.
"""

from __future__ import annotations

import contextlib
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from saas_cache.cache.base import (
    MISS,
    CacheProvider,
    CacheProviderError,
    CacheSerializationError,
    CacheStats,
)
from saas_cache.cache.memory import InMemoryCacheProvider
from saas_cache.core.metrics import (
    CACHE_INVALIDATED_KEYS,
    CACHE_LOADER_DURATION,
    CACHE_OPERATIONS,
    CACHE_PROVIDER_ERRORS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 3600


class CacheService:
    def __init__(
        self,
        provider: CacheProvider,
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        strict_startup: bool = False,
    ) -> None:
        if default_ttl < 1:
            raise ValueError(f"default_ttl must be positive (got {default_ttl})")
        self._provider = provider
        self._default_ttl = default_ttl
        self._strict_startup = strict_startup
        self._initialized = False

    @property
    def provider(self) -> CacheProvider:
        return self._provider

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    @property
    def strict_startup(self) -> bool:
        return self._strict_startup

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Verify the provider at startup.

        If the backing store is unreachable there are two options, and
        this service picks exactly one based on ``strict_startup``:

          strict  -> re-raise; the process fails to boot and the operator
                     fixes configuration before any traffic is served.
          default -> swap in the in-memory provider and log at ERROR.  The
                     app stays available, but this instance no longer
                     shares invalidations with the rest of the fleet.
        """
        if self._initialized:
            return
        try:
            await self._provider.initialize()
        except CacheProviderError:
            if self._strict_startup:
                logger.exception(
                    "Cache provider %s unavailable at startup (strict mode)",
                    self._provider.name,
                    extra={"provider": self._provider.name},
                )
                raise
            logger.exception(
                "Cache provider %s unavailable at startup; falling back to "
                "in-memory cache (invalidations are no longer shared across instances)",
                self._provider.name,
                extra={"provider": self._provider.name},
            )
            # Release the unreachable store's connection pool before dropping it
            with contextlib.suppress(CacheProviderError):
                await self._provider.close()
            self._provider = InMemoryCacheProvider()
            await self._provider.initialize()
        self._initialized = True
        logger.info(
            "Cache service ready  provider=%s default_ttl=%ds",
            self._provider.name,
            self._default_ttl,
        )

    async def close(self) -> None:
        try:
            await self._provider.close()
        except CacheProviderError:
            logger.warning("Cache provider close failed", exc_info=True)
        self._initialized = False

    async def ping(self) -> bool:
        try:
            return await self._provider.ping()
        except CacheProviderError:
            return False

    # ------------------------------------------------------------------
    # Reads (fail-open)
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any:
        """Return the cached value for ``key`` or ``MISS``.

        ``MISS`` covers "not found", "expired", "store unreachable" and
        "entry unreadable".  A corrupt entry is deleted best-effort so the
        next load can replace it.
        """
        try:
            value = await self._provider.get(key)
        except CacheSerializationError:
            logger.warning(
                "Unreadable cache entry treated as miss: %s",
                key,
                exc_info=True,
                extra={"cache_key": key, "cache_operation": "get"},
            )
            CACHE_OPERATIONS.labels(operation="get", result="error").inc()
            await self.delete(key)
            return MISS
        except CacheProviderError:
            self._log_failure("get", key=key)
            CACHE_OPERATIONS.labels(operation="get", result="error").inc()
            return MISS

        CACHE_OPERATIONS.labels(
            operation="get", result="miss" if value is MISS else "hit"
        ).inc()
        return value

    async def has(self, key: str) -> bool:
        # Existence checks gate optional behavior, so unknown means "no"
        try:
            return await self._provider.has(key)
        except CacheProviderError:
            self._log_failure("has", key=key)
            return False

    # ------------------------------------------------------------------
    # Writes and invalidation (fail-soft)
    # ------------------------------------------------------------------

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl_seconds = self._resolve_ttl(ttl)
        try:
            await self._provider.set(key, value, ttl_seconds)
        except CacheSerializationError:
            logger.warning(
                "Value for %s is not JSON-serializable; not cached",
                key,
                exc_info=True,
                extra={"cache_key": key, "cache_operation": "set"},
            )
            CACHE_OPERATIONS.labels(operation="set", result="error").inc()
            return
        except CacheProviderError:
            self._log_failure("set", key=key)
            CACHE_OPERATIONS.labels(operation="set", result="error").inc()
            return
        CACHE_OPERATIONS.labels(operation="set", result="ok").inc()

    async def delete(self, key: str) -> None:
        try:
            await self._provider.delete(key)
        except CacheProviderError:
            self._log_failure("delete", key=key)
            CACHE_OPERATIONS.labels(operation="delete", result="error").inc()
            return
        CACHE_OPERATIONS.labels(operation="delete", result="ok").inc()

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern``; return how many went.

        Returns 0 when the store failed.  Callers do not need to check.
        """
        try:
            removed = await self._provider.delete_pattern(pattern)
        except CacheProviderError:
            self._log_failure("invalidate", pattern=pattern)
            CACHE_OPERATIONS.labels(operation="invalidate", result="error").inc()
            return 0
        CACHE_OPERATIONS.labels(operation="invalidate", result="ok").inc()
        CACHE_INVALIDATED_KEYS.inc(removed)
        logger.debug(
            "Invalidated %d keys for pattern %s",
            removed,
            pattern,
            extra={"cache_pattern": pattern, "cache_operation": "invalidate"},
        )
        return removed

    # ------------------------------------------------------------------
    # Load-through
    # ------------------------------------------------------------------

    async def get_or_set(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]] | Callable[[], T],
        ttl: int | None = None,
        *,
        skip_cache: bool = False,
    ) -> T:
        """Return the cached value, or compute it with ``loader`` and cache it.

        ``loader`` may be a plain function or a coroutine function.
        ``skip_cache`` bypasses the cache entirely (no read, no write) for
        callers that need a guaranteed-fresh value.
        """
        ttl_seconds = self._resolve_ttl(ttl)

        if skip_cache:
            return await self._load(key, loader)

        cached = await self.get(key)
        if cached is not MISS:
            return cached

        value = await self._load(key, loader)
        await self.set(key, value, ttl_seconds)
        return value

    async def _load(self, key: str, loader: Callable[[], Any]) -> Any:
        start = time.monotonic()
        result = loader()
        if inspect.isawaitable(result):
            result = await result
        elapsed = time.monotonic() - start
        CACHE_LOADER_DURATION.observe(elapsed)
        logger.debug(
            "Loaded %s in %.1fms",
            key,
            elapsed * 1000,
            extra={"cache_key": key, "duration_ms": round(elapsed * 1000, 1)},
        )
        return result

    # ------------------------------------------------------------------
    # Admin operations (errors propagate so the admin sees them)
    # ------------------------------------------------------------------

    async def get_stats(self) -> CacheStats:
        return await self._provider.get_stats()

    async def clear(self) -> int:
        removed = await self._provider.clear()
        logger.warning(
            "Cache cleared: %d entries removed",
            removed,
            extra={"cache_operation": "clear", "provider": self._provider.name},
        )
        return removed

    async def reset_stats(self) -> None:
        await self._provider.reset_stats()

    # ------------------------------------------------------------------

    def _resolve_ttl(self, ttl: int | None) -> int:
        if ttl is None:
            return self._default_ttl
        if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl < 1:
            raise ValueError(f"ttl must be a positive integer number of seconds (got {ttl!r})")
        return ttl

    def _log_failure(
        self, operation: str, *, key: str | None = None, pattern: str | None = None
    ) -> None:
        CACHE_PROVIDER_ERRORS.labels(operation=operation).inc()
        logger.warning(
            "Cache %s failed for %s",
            operation,
            key if key is not None else pattern,
            exc_info=True,
            extra={
                "cache_key": key,
                "cache_pattern": pattern,
                "cache_operation": operation,
                "provider": self._provider.name,
            },
        )
