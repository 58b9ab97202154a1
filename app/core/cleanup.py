"""Background sweep of expired rate limit counters.

Counters are created lazily for every new identifier, so without a sweep the
in-memory store grows with every client ever seen. The sweeper runs
``limiter.cleanup()`` on a fixed interval from the application lifespan.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Periodically remove expired counters from a limiter.

    Usage:
        sweeper = RateLimitSweeper(get_rate_limiter, interval_seconds=300)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        limiter_provider: Callable[[], AbstractRateLimiter],
        *,
        interval_seconds: float = 300,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiter_provider = limiter_provider
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    def sweep_once(self) -> int:
        """Run a single cleanup pass and return how many counters were removed."""
        removed = self._limiter_provider().cleanup()
        logger.info("rate_limit.cleanup", extra={"removed": removed, "trigger": "timer"})
        return removed

    async def start(self) -> None:
        """Start the background sweep task (no-op if already running)."""
        if self._task is not None:
            logger.debug("rate_limit.sweeper_already_running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info("rate_limit.sweeper_started", extra={"interval_s": self._interval})

    async def stop(self) -> None:
        """Stop the background task, cancelling it if it does not exit promptly."""
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("rate_limit.sweeper_stop_timeout")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("rate_limit.sweeper_stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                # Interval elapsed without a stop request
                pass
            else:
                break

            try:
                self.sweep_once()
            except Exception as exc:
                logger.error(
                    "rate_limit.cleanup_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )
