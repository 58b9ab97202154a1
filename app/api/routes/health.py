from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> JSONResponse:
    """Health check endpoint.

    Reports service metadata and whether the request admission store answers.
    Returns 200 when everything is healthy and 503 when degraded, so load
    balancers can act on the status code alone.
    """

    checks = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": "healthy",
        "services": {"rate_limiter": "unknown"},
        "version": settings.app.version,
        "environment": settings.app_env,
    }

    try:
        get_rate_limiter().stats()
        checks["services"]["rate_limiter"] = "healthy"
    except Exception as exc:
        logger.error("health.rate_limiter_unhealthy", extra={"error_type": type(exc).__name__})
        checks["services"]["rate_limiter"] = "unhealthy"
        checks["status"] = "degraded"

    status_code = 200 if checks["status"] == "healthy" else 503
    return JSONResponse(content=checks, status_code=status_code)
