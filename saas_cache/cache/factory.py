"""Provider selection and service construction.

Called once per process from the FastAPI lifespan (or a worker's
startup).  The resulting CacheService is handed to consumers explicitly
via ``app.state`` and the ``get_cache_service`` dependency.
"""

from __future__ import annotations

import logging

from saas_cache.cache.base import CacheProvider
from saas_cache.cache.memory import InMemoryCacheProvider
from saas_cache.cache.redis import RedisCacheProvider
from saas_cache.cache.service import CacheService
from saas_cache.core.config import Settings
from saas_cache.db.redis import create_redis_client

logger = logging.getLogger(__name__)


def build_provider(settings: Settings, redis_client=None) -> CacheProvider:
    """Pick the backing store from configuration.

    ``redis_client`` lets tests and workers supply an existing client;
    otherwise one is created from ``REDIS_URL``.
    """
    if settings.use_redis_cache:
        client = redis_client if redis_client is not None else create_redis_client(settings)
        logger.info("Creating cache provider: redis")
        return RedisCacheProvider(
            client,
            prefix=settings.cache_key_prefix,
            scan_count=settings.cache_scan_count,
        )

    if settings.is_prod:
        logger.warning(
            "Creating cache provider: memory in prod; cache is not shared across instances"
        )
    else:
        logger.info("Creating cache provider: memory")
    return InMemoryCacheProvider()


def create_cache_service(settings: Settings, redis_client=None) -> CacheService:
    return CacheService(
        build_provider(settings, redis_client),
        default_ttl=settings.cache_default_ttl,
        strict_startup=settings.cache_strict_startup,
    )
