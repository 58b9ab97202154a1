"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation)
so the counter store can be swapped later (e.g., a shared Redis counter for
multi-instance deployments) with minimal changes.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitPolicy:
    """Named fixed-window policy.

    Attributes:
        name: Stable policy name; counters are scoped per name.
        window_ms: Window duration in milliseconds.
        max_requests: Requests admitted per identifier within one window.
        fail_closed: Reject requests when the counter store itself fails.
    """

    name: str
    window_ms: int
    max_requests: int
    fail_closed: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("policy name must be a non-empty string")
        if self.window_ms < 1:
            raise ValueError(f"policy {self.name!r}: window_ms must be >= 1")
        if self.max_requests < 1:
            raise ValueError(f"policy {self.name!r}: max_requests must be >= 1")


@dataclass(frozen=True)
class RateLimitResult:
    """Result of an admission check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window for the policy.
        window_ms: Window size in milliseconds for the policy.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_time: UNIX epoch milliseconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    window_ms: int
    remaining: int | None = None
    reset_time: int | None = None
    retry_after_seconds: int | None = None


class AbstractRateLimiter(ABC):
    """Interface for fixed-window admission controllers."""

    @abstractmethod
    def is_allowed(self, identifier: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Count one request for identifier under policy and decide admission.

        Args:
            identifier: Requester key (e.g., "user:<uid>", "ip:<addr>").
            policy: Policy whose window and limit apply.

        Returns:
            RateLimitResult describing whether the request was admitted.
        """
        raise NotImplementedError

    @abstractmethod
    def cleanup(self) -> int:
        """Remove counters whose window has already ended.

        Returns:
            Number of counters removed.
        """
        raise NotImplementedError

    @abstractmethod
    def stats(self) -> dict[str, int | dict[str, int]]:
        """Return counter totals without exposing identifiers."""
        raise NotImplementedError


def get_headers(result: RateLimitResult) -> dict[str, str]:
    """Render informational X-RateLimit-* headers for a result.

    Examples:
        >>> r = RateLimitResult(allowed=True, limit=5, window_ms=1000, remaining=3, reset_time=1500)
        >>> get_headers(r)["X-RateLimit-Reset"]
        '2'
    """
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Window": str(result.window_ms),
    }

    if result.remaining is not None:
        headers["X-RateLimit-Remaining"] = str(result.remaining)

    if result.reset_time:
        headers["X-RateLimit-Reset"] = str(math.ceil(result.reset_time / 1000))

    return headers
