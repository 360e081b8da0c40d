"""Caching layer.

    from saas_cache.cache import CacheKeys, MISS

    org = await cache.get_or_set(
        CacheKeys.organization(org_id),
        lambda: org_repo.get(org_id),
        ttl=300,
    )
"""

from saas_cache.cache.base import (
    MISS,
    CacheError,
    CacheProvider,
    CacheProviderError,
    CacheSerializationError,
    CacheStats,
)
from saas_cache.cache.factory import build_provider, create_cache_service
from saas_cache.cache.keys import CacheKeys
from saas_cache.cache.memory import InMemoryCacheProvider
from saas_cache.cache.redis import RedisCacheProvider
from saas_cache.cache.service import CacheService

__all__ = [
    "MISS",
    "CacheError",
    "CacheKeys",
    "CacheProvider",
    "CacheProviderError",
    "CacheSerializationError",
    "CacheService",
    "CacheStats",
    "InMemoryCacheProvider",
    "RedisCacheProvider",
    "build_provider",
    "create_cache_service",
]
