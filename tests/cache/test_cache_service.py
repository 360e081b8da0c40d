"""CacheService tests.

Covers the load-through contract and the failure policy:
  - read paths fail open (provider error -> miss -> loader runs)
  - write/invalidation paths fail soft (logged, never raised)
  - admin operations (stats, clear) surface errors
"""

from __future__ import annotations

import asyncio
import logging

import pytest
from prometheus_client import REGISTRY

from saas_cache.cache.base import MISS, CacheProviderError
from saas_cache.cache.keys import CacheKeys
from saas_cache.cache.memory import InMemoryCacheProvider
from saas_cache.cache.redis import RedisCacheProvider
from saas_cache.cache.service import CacheService
from tests.fakes import FailingProvider, FakeClock, FakeRedis


def _provider_error(operation: str = "get") -> CacheProviderError:
    return CacheProviderError(operation, "ConnectionError: store unreachable")


class CountingLoader:
    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


# ---- basic operations ----


def test_set_then_get(cache: CacheService) -> None:
    async def scenario():
        await cache.set(CacheKeys.user("1"), {"id": "1"})
        return await cache.get(CacheKeys.user("1"))

    assert asyncio.run(scenario()) == {"id": "1"}


def test_get_missing_returns_miss(cache: CacheService) -> None:
    assert asyncio.run(cache.get("user:404")) is MISS


def test_set_applies_default_ttl(cache: CacheService, clock: FakeClock) -> None:
    async def scenario():
        await cache.set("k", "v")  # default_ttl=60 in the fixture
        clock.advance(59)
        before = await cache.get("k")
        clock.advance(2)
        return before, await cache.get("k")

    before, after = asyncio.run(scenario())
    assert before == "v"
    assert after is MISS


@pytest.mark.parametrize("bad_ttl", [0, -5, 1.5, True])
def test_set_rejects_invalid_ttl(cache: CacheService, bad_ttl) -> None:
    with pytest.raises(ValueError, match="ttl must be a positive integer"):
        asyncio.run(cache.set("k", "v", ttl=bad_ttl))


def test_default_ttl_must_be_positive(memory_provider: InMemoryCacheProvider) -> None:
    with pytest.raises(ValueError):
        CacheService(memory_provider, default_ttl=0)


def test_delete_removes_exactly_one_key(cache: CacheService) -> None:
    async def scenario():
        await cache.set("A", 1)
        await cache.set("B", 2)
        await cache.delete("A")
        return await cache.get("A"), await cache.get("B")

    a, b = asyncio.run(scenario())
    assert a is MISS
    assert b == 2


def test_has(cache: CacheService) -> None:
    async def scenario():
        await cache.set("k", "v")
        return await cache.has("k"), await cache.has("other")

    assert asyncio.run(scenario()) == (True, False)


def test_invalidate_pattern_is_scoped(cache: CacheService) -> None:
    async def scenario():
        await cache.set("user:1", {"name": "Ann"})
        await cache.set("user:1:sessions", ["s1"])
        await cache.set("organization:1", {"name": "Acme"})
        removed = await cache.invalidate_pattern(CacheKeys.user_pattern("1"))
        return (
            removed,
            await cache.get("user:1"),
            await cache.get("user:1:sessions"),
            await cache.get("organization:1"),
        )

    removed, user, sessions, org = asyncio.run(scenario())
    assert removed == 2
    assert user is MISS
    assert sessions is MISS
    assert org == {"name": "Acme"}


# ---- load-through ----


def test_get_or_set_invokes_loader_once_then_serves_cache(cache: CacheService) -> None:
    first = CountingLoader({"v": 1})
    second = CountingLoader({"v": 2})

    async def scenario():
        a = await cache.get_or_set("k", first, ttl=30)
        b = await cache.get_or_set("k", second, ttl=30)
        return a, b

    a, b = asyncio.run(scenario())
    assert a == b == {"v": 1}
    assert first.calls == 1
    assert second.calls == 0


def test_get_or_set_accepts_sync_loader(cache: CacheService) -> None:
    assert asyncio.run(cache.get_or_set("k", lambda: [1, 2, 3])) == [1, 2, 3]


def test_get_or_set_caches_none(cache: CacheService) -> None:
    loader = CountingLoader(None)

    async def scenario():
        await cache.get_or_set("k", loader)
        return await cache.get_or_set("k", loader)

    assert asyncio.run(scenario()) is None
    assert loader.calls == 1


def test_get_or_set_reloads_after_expiry(cache: CacheService, clock: FakeClock) -> None:
    loader = CountingLoader("fresh")

    async def scenario():
        await cache.get_or_set("k", loader, ttl=5)
        clock.advance(6)
        await cache.get_or_set("k", loader, ttl=5)

    asyncio.run(scenario())
    assert loader.calls == 2


def test_get_or_set_skip_cache_bypasses_read_and_write(cache: CacheService) -> None:
    loader = CountingLoader("fresh")

    async def scenario():
        await cache.set("k", "stale")
        value = await cache.get_or_set("k", loader, skip_cache=True)
        return value, await cache.get("k")

    value, stored = asyncio.run(scenario())
    assert value == "fresh"
    assert stored == "stale"


def test_get_or_set_propagates_loader_errors(cache: CacheService) -> None:
    async def boom():
        raise LookupError("db row missing")

    with pytest.raises(LookupError, match="db row missing"):
        asyncio.run(cache.get_or_set("k", boom))
    assert asyncio.run(cache.get("k")) is MISS


def test_concurrent_misses_each_run_the_loader(cache: CacheService) -> None:
    calls = 0

    async def slow_loader():
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return calls

    async def scenario():
        return await asyncio.gather(
            cache.get_or_set("k", slow_loader), cache.get_or_set("k", slow_loader)
        )

    asyncio.run(scenario())
    # No single-flight: both callers load independently
    assert calls == 2


def test_user_42_scenario(cache: CacheService, clock: FakeClock) -> None:
    async def scenario():
        await cache.set("user:42", {"name": "Ann"}, ttl=5)
        first = await cache.get("user:42")
        clock.advance(6)
        expired = await cache.get("user:42")
        reloaded = await cache.get_or_set("user:42", lambda: {"name": "Ann2"})
        again = await cache.get("user:42")
        return first, expired, reloaded, again

    first, expired, reloaded, again = asyncio.run(scenario())
    assert first == {"name": "Ann"}
    assert expired is MISS
    assert reloaded == {"name": "Ann2"}
    assert again == {"name": "Ann2"}


# ---- failure policy ----


def test_get_or_set_fails_open_when_provider_get_fails(
    memory_provider: InMemoryCacheProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken_get(key):
        raise _provider_error("get")

    monkeypatch.setattr(memory_provider, "get", broken_get)
    cache = CacheService(memory_provider)
    loader = CountingLoader({"fresh": True})

    assert asyncio.run(cache.get_or_set("k", loader)) == {"fresh": True}
    assert loader.calls == 1


def test_get_or_set_returns_value_when_set_fails(
    memory_provider: InMemoryCacheProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def broken_set(key, value, ttl_seconds=None):
        raise _provider_error("set")

    monkeypatch.setattr(memory_provider, "set", broken_set)
    cache = CacheService(memory_provider)

    assert asyncio.run(cache.get_or_set("k", lambda: "value")) == "value"


def test_get_or_set_with_unserializable_value_still_returns_it(cache: CacheService) -> None:
    marker = object()
    assert asyncio.run(cache.get_or_set("k", lambda: marker)) is marker
    assert asyncio.run(cache.get("k")) is MISS


def test_everything_fails_soft_with_unreachable_store(caplog: pytest.LogCaptureFixture) -> None:
    cache = CacheService(FailingProvider(_provider_error()))

    async def scenario():
        await cache.set("k", "v")
        await cache.delete("k")
        removed = await cache.invalidate_pattern("user:*")
        return removed, await cache.get("k"), await cache.has("k"), await cache.ping()

    with caplog.at_level(logging.WARNING, logger="saas_cache.cache.service"):
        removed, value, present, reachable = asyncio.run(scenario())

    assert removed == 0
    assert value is MISS
    assert present is False
    assert reachable is False
    messages = [r.getMessage() for r in caplog.records]
    assert any("delete failed for k" in m for m in messages)
    assert any("invalidate failed for user:*" in m for m in messages)


def test_delete_failure_is_logged_with_key(
    memory_provider: InMemoryCacheProvider,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def broken_delete(key):
        raise _provider_error("delete")

    monkeypatch.setattr(memory_provider, "delete", broken_delete)
    cache = CacheService(memory_provider)

    with caplog.at_level(logging.WARNING, logger="saas_cache.cache.service"):
        asyncio.run(cache.delete("organization:7"))

    record = next(r for r in caplog.records if r.getMessage().startswith("Cache delete"))
    assert record.cache_key == "organization:7"  # type: ignore[attr-defined]
    assert record.exc_info is not None


def test_corrupt_entry_is_a_miss_and_is_removed(
    cache: CacheService, memory_provider: InMemoryCacheProvider
) -> None:
    memory_provider._store["k"] = ("{broken", None)
    loader = CountingLoader("rebuilt")

    assert asyncio.run(cache.get_or_set("k", loader)) == "rebuilt"
    assert loader.calls == 1
    assert asyncio.run(cache.get("k")) == "rebuilt"


def test_admin_operations_propagate_errors() -> None:
    cache = CacheService(FailingProvider(_provider_error("get_stats")))
    with pytest.raises(CacheProviderError):
        asyncio.run(cache.get_stats())
    with pytest.raises(CacheProviderError):
        asyncio.run(cache.clear())


def test_stats_and_reset(cache: CacheService) -> None:
    async def scenario():
        await cache.set("k", 1)
        await cache.get("k")
        await cache.get("missing")
        stats = await cache.get_stats()
        await cache.reset_stats()
        return stats, await cache.get_stats()

    stats, after_reset = asyncio.run(scenario())
    assert (stats.hits, stats.misses, stats.keys) == (1, 1, 1)
    assert stats.hit_rate == 0.5
    assert (after_reset.hits, after_reset.misses, after_reset.keys) == (0, 0, 1)


# ---- startup ----


def test_initialize_falls_back_to_memory_when_store_is_down() -> None:
    cache = CacheService(FailingProvider(_provider_error("initialize")))

    async def scenario():
        await cache.initialize()
        await cache.set("k", "v")
        value = await cache.get("k")
        await cache.close()
        return value

    assert asyncio.run(scenario()) == "v"
    assert isinstance(cache.provider, InMemoryCacheProvider)


def test_initialize_strict_mode_raises() -> None:
    cache = CacheService(FailingProvider(_provider_error("initialize")), strict_startup=True)
    with pytest.raises(CacheProviderError):
        asyncio.run(cache.initialize())
    assert isinstance(cache.provider, FailingProvider)


def test_fallback_releases_the_unreachable_redis_client() -> None:
    fake = FakeRedis()
    fake.fail_on = {"ping"}
    cache = CacheService(RedisCacheProvider(fake))

    async def scenario():
        await cache.initialize()
        await cache.close()

    asyncio.run(scenario())
    assert fake.closed is True
    assert isinstance(cache.provider, InMemoryCacheProvider)


# ---- serialization ----


def test_unserializable_value_is_not_counted_as_store_failure(
    cache: CacheService, caplog: pytest.LogCaptureFixture
) -> None:
    labels = {"operation": "set"}
    before = REGISTRY.get_sample_value("cache_provider_errors_total", labels) or 0.0

    with caplog.at_level(logging.WARNING, logger="saas_cache.cache.service"):
        asyncio.run(cache.set("report:1", object()))

    after = REGISTRY.get_sample_value("cache_provider_errors_total", labels) or 0.0
    assert after == before
    record = next(r for r in caplog.records if "not JSON-serializable" in r.getMessage())
    assert record.cache_key == "report:1"  # type: ignore[attr-defined]
    assert asyncio.run(cache.get("report:1")) is MISS
