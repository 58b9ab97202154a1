"""Request admission wiring for the HTTP layer.

This module connects the rate limiting adapter to FastAPI:

- the named policy set, built once from settings at import time
- identifier resolution (authenticated user id, else client address)
- explicit route-to-policy mapping used by the middleware
- a dependency factory for endpoints that need a stricter policy

Counters live in a process-wide limiter. Running several workers means each
one enforces its own limits; swap the limiter via ``set_rate_limiter`` for a
shared store.
"""

from __future__ import annotations

import logging

from fastapi import Request, Response

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    get_headers,
)
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.config import RateLimitSettings, settings
from app.core.errors import RateLimitAppError, RateLimitUnavailableError
from app.core.logging import hash_for_log

logger = logging.getLogger(__name__)


VIDEO_GENERATION = "video_generation"
IMAGE_UPLOAD = "image_upload"
AUTH = "auth"
PAYMENT = "payment"
GENERAL = "general"

# Policies that reject traffic when the counter store is broken
_FAIL_CLOSED = {AUTH, PAYMENT}

API_PREFIX = "/api"

# Explicit routes guarded by the authentication policy. Matching is on whole
# path segments, so "/api/gallery/login-tips" stays on the general policy.
AUTH_ROUTE_PREFIXES: tuple[str, ...] = (
    "/api/auth",
    "/api/login",
    "/api/signup",
)


def build_policies(cfg: RateLimitSettings) -> dict[str, RateLimitPolicy]:
    """Build the named policy set from settings.

    Raises:
        ValueError: If any window or limit is not positive.
    """

    windows = {
        VIDEO_GENERATION: (cfg.video_generation_window_seconds, cfg.video_generation_max_requests),
        IMAGE_UPLOAD: (cfg.image_upload_window_seconds, cfg.image_upload_max_requests),
        AUTH: (cfg.auth_window_seconds, cfg.auth_max_requests),
        PAYMENT: (cfg.payment_window_seconds, cfg.payment_max_requests),
        GENERAL: (cfg.general_window_seconds, cfg.general_max_requests),
    }
    return {
        name: RateLimitPolicy(
            name=name,
            window_ms=window_seconds * 1000,
            max_requests=max_requests,
            fail_closed=name in _FAIL_CLOSED,
        )
        for name, (window_seconds, max_requests) in windows.items()
    }


RATE_LIMITS: dict[str, RateLimitPolicy] = build_policies(settings.rate_limit)


def get_policy(name: str) -> RateLimitPolicy:
    """Look up a configured policy by name.

    Raises:
        KeyError: If no policy has that name.
    """

    return RATE_LIMITS[name]


_limiter: AbstractRateLimiter | None = None


def get_rate_limiter() -> AbstractRateLimiter:
    """Return the process-wide rate limiter, creating it on first use."""

    global _limiter

    if _limiter is None:
        _limiter = InMemoryFixedWindowRateLimiter()
    return _limiter


def set_rate_limiter(limiter: AbstractRateLimiter | None) -> None:
    """Replace the process-wide limiter (None resets to a fresh in-memory one)."""

    global _limiter
    _limiter = limiter


def _path_matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def select_policy_name(path: str) -> str | None:
    """Map a request path to the policy the middleware applies.

    Args:
        path: URL path of the request.

    Returns:
        Policy name, or None when the path is not rate limited.

    Examples:
        >>> select_policy_name("/api/auth/session")
        'auth'
        >>> select_policy_name("/api/gallery")
        'general'
        >>> select_policy_name("/gallery") is None
        True
    """

    if not _path_matches(path, API_PREFIX):
        return None
    for prefix in AUTH_ROUTE_PREFIXES:
        if _path_matches(path, prefix):
            return AUTH
    return GENERAL


def resolve_identifier(request: Request, user_id: str | None = None) -> str:
    """Build the limiter identifier for a request.

    Uses the authenticated user id when available. Otherwise falls back to the
    first X-Forwarded-For entry, then X-Real-IP, then the socket peer address,
    then the literal "unknown".
    """

    if user_id:
        return f"user:{user_id}"

    forwarded = request.headers.get("x-forwarded-for")
    ip = forwarded.split(",")[0].strip() if forwarded else ""
    if not ip:
        ip = (request.headers.get("x-real-ip") or "").strip()
    if not ip and request.client and request.client.host:
        ip = request.client.host
    return f"ip:{ip or 'unknown'}"


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Headers to attach for a decision, honoring the include_headers switch."""

    if not settings.rate_limit.include_headers:
        return {}

    headers = get_headers(result)
    if not result.allowed and result.retry_after_seconds is not None:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return headers


def check_rate_limit(
    request: Request,
    policy: RateLimitPolicy,
    *,
    user_id: str | None = None,
) -> RateLimitResult | None:
    """Run one admission check for the request under policy.

    Returns:
        The decision, or None when the store failed and the policy fails open.

    Raises:
        RateLimitUnavailableError: When the store failed and the policy fails closed.
    """

    identifier = resolve_identifier(request, user_id)
    key_type = identifier.split(":", 1)[0]
    key_hash = hash_for_log(identifier)

    try:
        result = get_rate_limiter().is_allowed(identifier, policy)
    except Exception as exc:
        logger.error(
            "rate_limit.store_error",
            extra={
                "policy": policy.name,
                "key_type": key_type,
                "key_hash": key_hash,
                "fail_closed": policy.fail_closed,
                "error_type": type(exc).__name__,
            },
        )
        if policy.fail_closed:
            raise RateLimitUnavailableError(
                code="rate_limit_unavailable",
                message="Request admission is temporarily unavailable. Please try again later.",
                details={"policy": policy.name},
            ) from exc
        return None

    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "policy": policy.name,
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
    else:
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "policy": policy.name,
                "key_type": key_type,
                "key_hash": key_hash,
                "limit": result.limit,
                "window_ms": result.window_ms,
                "retry_after_s": result.retry_after_seconds,
            },
        )
    return result


def rate_limited(policy_name: str):
    """Create a FastAPI dependency enforcing a named policy on one endpoint.

    The identifier is the authenticated user id from ``request.state.user_id``
    when an upstream auth layer set it, otherwise the client address.

    Usage:
        @router.post("/video/generate", dependencies=[Depends(rate_limited(VIDEO_GENERATION))])
        async def generate(): ...

    Raises:
        KeyError: At import time, if the policy name is unknown.
    """

    policy = get_policy(policy_name)

    async def enforce_rate_limit(request: Request, response: Response) -> None:
        if not settings.rate_limit.enabled:
            return

        result = check_rate_limit(
            request,
            policy,
            user_id=getattr(request.state, "user_id", None),
        )
        if result is None:
            return

        headers = rate_limit_headers(result)
        if result.allowed:
            response.headers.update(headers)
            return

        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded. Please try again later.",
            reset_time=result.reset_time,
            headers=headers,
        )

    return enforce_rate_limit
