"""HTTP middleware: request correlation, request admission, security headers.

Registration order matters: the last middleware added is the outermost one.
``app_factory.create_app`` adds them so that request ids wrap everything and
security headers also reach 429 responses:

    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.errors import RateLimitUnavailableError
from app.core.exception_handlers import app_error_handler, rate_limit_response
from app.core.logging import clear_request_id, set_request_id
from app.core.rate_limit import (
    API_PREFIX,
    check_rate_limit,
    get_policy,
    rate_limit_headers,
    select_policy_name,
)

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# Only set on /api responses; the docs pages load Swagger UI from a CDN
API_CONTENT_SECURITY_POLICY = "default-src 'none'; frame-ancestors 'none'"


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a correlation id to the request context and the response.

    Uses the incoming request id header (``LOG_REQUEST_ID_HEADER``, default
    X-Request-ID) when present, otherwise generates a UUID. The response gets
    the id back plus an X-Request-Duration-ms header.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Admit or reject API requests before any route logic runs.

    The policy comes from the request path (see ``select_policy_name``);
    paths outside /api are passed through untouched. Rejected requests get a
    429 JSON body with the window reset time. Admitted requests carry the
    X-RateLimit-* headers on their eventual response.

    If the counter store raises, fail-closed policies answer 503 and the
    others let the request through without headers.
    """

    if not settings.rate_limit.enabled:
        return await call_next(request)

    policy_name = select_policy_name(request.url.path)
    if policy_name is None:
        return await call_next(request)

    policy = get_policy(policy_name)
    try:
        result = check_rate_limit(
            request,
            policy,
            user_id=getattr(request.state, "user_id", None),
        )
    except RateLimitUnavailableError as exc:
        return await app_error_handler(request, exc)

    if result is None:
        return await call_next(request)

    headers = rate_limit_headers(result)
    if not result.allowed:
        return rate_limit_response(result.reset_time, headers)

    response: Response = await call_next(request)
    for name, value in headers.items():
        response.headers.setdefault(name, value)
    return response


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add baseline browser security headers to every response."""

    response: Response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    path = request.url.path
    if path == API_PREFIX or path.startswith(API_PREFIX + "/"):
        response.headers.setdefault("Content-Security-Policy", API_CONTENT_SECURITY_POLICY)
    return response
