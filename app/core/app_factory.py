from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (lifespan, middleware, handlers, routers) so
tests can build isolated instances.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.sweeper import RateLimitSweeper
from app.api.routes import health_router, rate_limits_router, search_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import POLICIES, get_rate_limit_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start the expired-entry sweeper for the lifetime of the app."""
    sweeper: RateLimitSweeper | None = None
    if settings.rate_limit.enabled and settings.rate_limit.sweep_enabled:
        sweeper = RateLimitSweeper(
            get_rate_limit_store(),
            interval_seconds=settings.rate_limit.sweep_interval_seconds,
        )
        sweeper.start()
    app.state.rate_limit_sweeper = sweeper

    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "rate_limit_enabled": settings.rate_limit.enabled,
            "policies": sorted(POLICIES),
        },
    )
    try:
        yield
    finally:
        if sweeper is not None:
            await sweeper.stop()
        app.state.rate_limit_sweeper = None


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Collopi Rate Limiter",
        description=(
            "Adaptive rate limiting for the collaboration platform API. "
            "Anonymous callers are limited per IP; callers presenting a valid "
            "X-API-Key on authentication-aware routes are limited per user "
            "with a higher ceiling."
        ),
        version="0.1.0",
        lifespan=lifespan,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limits_router, prefix="/v1")
    app.include_router(search_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags)
    apply_openapi_customizations(app)

    return app
