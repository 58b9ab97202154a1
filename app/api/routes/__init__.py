from __future__ import annotations

from app.api.routes.cron import router as cron_router
from app.api.routes.health import router as health_router
from app.api.routes.metrics import router as metrics_router

__all__ = ["cron_router", "health_router", "metrics_router"]
