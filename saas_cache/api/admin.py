"""Admin cache endpoints.

GET    /admin/cache/stats   hit/miss/key counters from the provider
DELETE /admin/cache         drop every cache entry (destructive)

Unlike the read and invalidation paths, these surface store failures:
an operator asking for stats while Redis is down should see a 503, not
a reassuring row of zeroes.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from saas_cache.api.dependencies import get_cache_service, require_role
from saas_cache.cache.base import CacheProviderError
from saas_cache.cache.service import CacheService
from saas_cache.models.principal import Principal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/cache", tags=["admin"])


class CacheStatsOut(BaseModel):
    provider: str
    hits: int
    misses: int
    keys: int
    hit_rate: float


class ClearCacheOut(BaseModel):
    success: bool
    message: str
    removed: int


@router.get("/stats", response_model=CacheStatsOut)
async def get_cache_stats(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    cache: Annotated[CacheService, Depends(get_cache_service)],
) -> CacheStatsOut:
    logger.info("Cache stats requested by user=%s", principal.user_id)
    try:
        stats = await cache.get_stats()
    except CacheProviderError as exc:
        logger.error("Cache stats unavailable: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cache store unavailable",
        ) from None
    return CacheStatsOut(
        provider=cache.provider.name,
        hits=stats.hits,
        misses=stats.misses,
        keys=stats.keys,
        hit_rate=round(stats.hit_rate, 4),
    )


@router.delete("", response_model=ClearCacheOut)
async def clear_cache(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    cache: Annotated[CacheService, Depends(get_cache_service)],
) -> ClearCacheOut:
    logger.warning("Cache clear requested by user=%s", principal.user_id)
    try:
        removed = await cache.clear()
    except CacheProviderError as exc:
        logger.error("Cache clear failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cache store unavailable",
        ) from None
    return ClearCacheOut(
        success=True,
        message="Cache cleared successfully",
        removed=removed,
    )
