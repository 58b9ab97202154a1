from __future__ import annotations

import platform
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.core.auth import verify_metrics_key
from app.core.rate_limit import RATE_LIMITS, get_rate_limiter

router = APIRouter(tags=["Operations"])

_STARTED_AT = time.monotonic()


@router.get("/metrics", dependencies=[Depends(verify_metrics_key)])
def get_metrics() -> dict:
    """Expose request admission counters and process information.

    Counter totals are aggregated per policy; identifiers are never returned.
    """

    limiter_stats = get_rate_limiter().stats()
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "rate_limits": {
            **limiter_stats,
            "policies": {
                name: {"window_ms": policy.window_ms, "max_requests": policy.max_requests}
                for name, policy in RATE_LIMITS.items()
            },
        },
        "system": {
            "uptime_seconds": round(time.monotonic() - _STARTED_AT, 3),
            "python_version": platform.python_version(),
        },
    }
