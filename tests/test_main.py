from __future__ import annotations

from fastapi.testclient import TestClient

from saas_cache.cache.base import CacheProviderError
from saas_cache.cache.memory import InMemoryCacheProvider
from saas_cache.cache.service import CacheService
from saas_cache.main import app, create_app
from tests.fakes import FailingProvider


def test_module_level_app_serves_health() -> None:
    with TestClient(app) as client:
        resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_lifespan_attaches_and_releases_cache(cache: CacheService) -> None:
    application = create_app(cache=cache)
    with TestClient(application):
        assert application.state.cache is cache
    assert application.state.cache is None


def test_unreachable_store_falls_back_to_memory() -> None:
    service = CacheService(FailingProvider(CacheProviderError("initialize", "refused")))
    application = create_app(cache=service)
    with TestClient(application) as client:
        resp = client.get("/health")
    assert resp.json() == {"status": "ok", "checks": {"cache": "ok"}, "provider": "memory"}
    assert isinstance(service.provider, InMemoryCacheProvider)
