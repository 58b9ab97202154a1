"""In-memory fixed-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a single lock guards the read-check-increment and the sweep.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy, RateLimitResult


@dataclass
class _Counter:
    count: int
    reset_time: int


class InMemoryFixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter using a fixed window per (policy, identifier).

    The window starts at the first request an identifier makes under a policy
    and lasts ``policy.window_ms``. Requests beyond ``policy.max_requests`` in
    that window are rejected without being counted. Because windows are fixed,
    a client can burst up to twice the limit around a window boundary.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._counters: dict[tuple[str, str], _Counter] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def is_allowed(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Count one request and decide admission.

        Args:
            identifier: Unique requester key (e.g., "user:<uid>").
            policy: Policy providing the window and request limit.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If identifier is empty.
        """
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        key = (policy.name, identifier)

        with self._lock:
            now = self._now_ms()
            counter = self._counters.get(key)

            if counter is None or now >= counter.reset_time:
                counter = _Counter(count=1, reset_time=now + policy.window_ms)
                self._counters[key] = counter
                return self._allowed(policy, counter)

            if counter.count >= policy.max_requests:
                return self._blocked(policy, counter, now)

            counter.count += 1
            return self._allowed(policy, counter)

    def cleanup(self) -> int:
        """Drop counters whose reset time is strictly in the past."""
        with self._lock:
            now = self._now_ms()
            expired = [key for key, counter in self._counters.items() if counter.reset_time < now]
            for key in expired:
                del self._counters[key]
            return len(expired)

    def stats(self) -> dict[str, int | dict[str, int]]:
        with self._lock:
            by_policy: dict[str, int] = {}
            for policy_name, _ in self._counters:
                by_policy[policy_name] = by_policy.get(policy_name, 0) + 1
            return {
                "tracked_counters": len(self._counters),
                "by_policy": by_policy,
            }

    @staticmethod
    def _allowed(policy: RateLimitPolicy, counter: _Counter) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=policy.max_requests,
            window_ms=policy.window_ms,
            remaining=policy.max_requests - counter.count,
            reset_time=counter.reset_time,
        )

    @staticmethod
    def _blocked(policy: RateLimitPolicy, counter: _Counter, now: int) -> RateLimitResult:
        retry_after = max(0, int(math.ceil((counter.reset_time - now) / 1000)))
        return RateLimitResult(
            allowed=False,
            limit=policy.max_requests,
            window_ms=policy.window_ms,
            remaining=0,
            reset_time=counter.reset_time,
            retry_after_seconds=retry_after,
        )
