from __future__ import annotations

import sys
import time
from collections.abc import Iterator
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import saas_cache` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from saas_cache.api.dependencies import JWT_ALGORITHM  # noqa: E402
from saas_cache.cache.memory import InMemoryCacheProvider  # noqa: E402
from saas_cache.cache.redis import RedisCacheProvider  # noqa: E402
from saas_cache.cache.service import CacheService  # noqa: E402
from saas_cache.core.config import SETTINGS  # noqa: E402
from saas_cache.main import create_app  # noqa: E402
from tests.fakes import FakeClock, FakeRedis  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_provider(clock: FakeClock) -> InMemoryCacheProvider:
    # No background purge task: tests drive expiry through the clock.
    return InMemoryCacheProvider(clock=clock, purge_interval_seconds=None)


@pytest.fixture
def cache(memory_provider: InMemoryCacheProvider) -> CacheService:
    return CacheService(memory_provider, default_ttl=60)


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def redis_provider(fake_redis: FakeRedis) -> RedisCacheProvider:
    # Small scan batches so multi-page cursors are exercised.
    return RedisCacheProvider(fake_redis, prefix="cache:", scan_count=3)


@pytest.fixture
def client(cache: CacheService) -> Iterator[TestClient]:
    with TestClient(create_app(cache=cache)) as c:
        yield c


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
    expires_in: int = 900,
) -> str:
    """Create an HS256 access token signed with the configured secret."""
    now = int(time.time())
    claims = {"sub": username, "roles": roles or ["user"], "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, SETTINGS.jwt_secret, algorithm=JWT_ALGORITHM)


@pytest.fixture
def token() -> str:
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])
