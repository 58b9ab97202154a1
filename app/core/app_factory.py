from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, lifespan, middleware, handlers,
routers) so tests can build isolated instances.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api.routes import cron_router, health_router, metrics_router
from app.core.cleanup import RateLimitSweeper
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import (
    rate_limit_middleware,
    request_id_middleware,
    security_headers_middleware,
)
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import get_rate_limiter


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the expired-counter sweeper for the lifetime of the app."""
    sweeper = RateLimitSweeper(
        get_rate_limiter,
        interval_seconds=settings.rate_limit.cleanup_interval_seconds,
    )
    app.state.rate_limit_sweeper = sweeper
    await sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Draworld API",
        description=(
            "Backend API for Draworld. Every /api route is subject to per-client "
            "fixed-window rate limits; rejected calls receive HTTP 429 with "
            "X-RateLimit-* headers."
        ),
        version=settings.app.version,
        lifespan=lifespan,
    )

    # Middleware (last added runs first)
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(health_router, prefix="/api")
    app.include_router(metrics_router, prefix="/api")
    app.include_router(cron_router, prefix="/api")

    apply_openapi_customizations(app)

    return app
