"""Liveness, readiness and Prometheus scrape endpoints.

  /health   "is the process alive?"  Always 200; ``status`` says whether
            the cache store answered.  A degraded cache only costs
            latency, so it must never get the container restarted.
  /ready    "should the load balancer send traffic here?"  Fails only in
            strict mode, where the deployment has declared the shared
            store mandatory.
  /metrics  Prometheus text exposition, not JSON.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from saas_cache.api.dependencies import get_cache_service
from saas_cache.cache.service import CacheService

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(
    cache: Annotated[CacheService, Depends(get_cache_service)],
) -> dict:
    reachable = await cache.ping()
    return {
        "status": "ok" if reachable else "degraded",
        "checks": {"cache": "ok" if reachable else "degraded"},
        "provider": cache.provider.name,
    }


@router.get("/ready")
async def ready(
    cache: Annotated[CacheService, Depends(get_cache_service)],
) -> Response:
    if cache.strict_startup and not await cache.ping():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
