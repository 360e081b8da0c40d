"""Provider contract shared by every cache backend.

A provider owns physical storage.  It never hides a failure: a store
that cannot be reached raises ``CacheProviderError`` and a value that
cannot be decoded raises ``CacheSerializationError``.  Deciding whether
a failure should degrade to a miss is the job of ``CacheService``.

Values cross the provider boundary as JSON so that the in-memory and
Redis backends give callers identical semantics: a tuple comes back as a
list, and a mutated object never mutates the cached copy.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Final, Protocol, runtime_checkable


class _Miss:
    """Sentinel type for "no entry", distinct from a cached ``None``."""

    _instance: _Miss | None = None

    def __new__(cls) -> _Miss:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Final = _Miss()


class CacheError(Exception):
    """Base class for cache-layer failures."""


class CacheProviderError(CacheError):
    """The backing store could not complete an operation."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class CacheSerializationError(CacheError):
    """A value could not be encoded for, or decoded from, the store."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key = key


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Aggregate provider counters.

    hits/misses count ``get`` outcomes since the last reset.
    keys is the number of live entries the provider owns.
    """

    hits: int
    misses: int
    keys: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


def encode_value(key: str, value: Any) -> str:
    try:
        return json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise CacheSerializationError(key, f"value is not JSON-serializable ({exc})") from exc


def decode_value(key: str, raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise CacheSerializationError(key, f"stored value is not valid JSON ({exc})") from exc


@runtime_checkable
class CacheProvider(Protocol):
    """Capability set every backing store implements."""

    name: str

    async def initialize(self) -> None:
        """Verify the store is usable; raise CacheProviderError if not."""
        ...

    async def close(self) -> None: ...

    async def ping(self) -> bool: ...

    async def get(self, key: str) -> Any:
        """Return the decoded value, or MISS when absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store a value.  ``ttl_seconds=None`` means no expiry."""
        ...

    async def delete(self, key: str) -> None: ...

    async def has(self, key: str) -> bool: ...

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching an anchored wildcard pattern."""
        ...

    async def clear(self) -> int: ...

    async def get_stats(self) -> CacheStats: ...

    async def reset_stats(self) -> None: ...
