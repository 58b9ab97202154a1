from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from app.core.auth import verify_cron_secret
from app.core.rate_limit import get_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Operations"])


@router.post("/cleanup", dependencies=[Depends(verify_cron_secret)])
def run_cleanup() -> dict:
    """Sweep expired rate limit counters on demand.

    Meant for an external scheduler; the in-process sweeper does the same on
    a timer, so calling this is optional.
    """

    removed = get_rate_limiter().cleanup()
    logger.info("rate_limit.cleanup", extra={"removed": removed, "trigger": "cron"})

    return {
        "success": True,
        "message": "Cleanup completed successfully",
        "results": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "cleaned": {"rate_limit_counters": removed},
        },
    }
