"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory counter store and later migrate to Redis or another shared store
without changing the HTTP layer.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    get_headers,
)
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemoryFixedWindowRateLimiter",
    "RateLimitPolicy",
    "RateLimitResult",
    "get_headers",
]
