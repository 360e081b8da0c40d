from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from saas_cache.api.admin import router as admin_router
from saas_cache.api.health import router as health_router
from saas_cache.cache.factory import create_cache_service
from saas_cache.cache.service import CacheService
from saas_cache.core.config import SETTINGS, Settings
from saas_cache.core.logging import setup_logging

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings = SETTINGS, cache: CacheService | None = None
) -> FastAPI:
    """Build the FastAPI app.

    The cache service is constructed once here (or injected by tests) and
    initialized in the lifespan hook, before the first request is served.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        service = cache if cache is not None else create_cache_service(settings)
        # Raises only in strict mode; otherwise degrades to in-memory
        await service.initialize()
        app.state.cache = service
        try:
            yield
        finally:
            await service.close()
            app.state.cache = None

    app = FastAPI(
        title="saas-cache",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )
    app.include_router(health_router)
    app.include_router(admin_router)
    return app


app = create_app()

logger.info(
    "saas-cache started  env=%s log_level=%s port=%d cache=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "redis" if SETTINGS.use_redis_cache else "memory",
)
