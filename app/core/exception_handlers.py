"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- RateLimitAppError → 429 with the rate limit body and headers
- AppError subclasses → appropriate HTTP status (400, 401, 503)
- Unexpected Exception → generic 500 (safety net)
- Error envelopes include request_id for distributed tracing
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitAppError,
    RateLimitUnavailableError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR = "Too many requests"
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."


def rate_limit_response(reset_time: int | None, headers: dict[str, str] | None = None) -> JSONResponse:
    """Build the 429 response shared by the middleware and route dependencies.

    Args:
        reset_time: UNIX epoch milliseconds when the window resets.
        headers: Optional X-RateLimit-* and Retry-After headers.

    Returns:
        JSONResponse with status 429.
    """
    return JSONResponse(
        status_code=429,
        content={
            "error": RATE_LIMIT_ERROR,
            "message": RATE_LIMIT_MESSAGE,
            "resetTime": reset_time,
        },
        headers=headers or None,
    )


async def rate_limit_error_handler(request: Request, exc: RateLimitAppError) -> JSONResponse:
    """Render a RateLimitAppError as a 429 response."""
    return rate_limit_response(exc.reset_time, exc.headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Routes domain errors to appropriate HTTP status codes:
    - AppError without a more specific type → 400 Bad Request
    - AuthenticationAppError → 401 Unauthorized (missing or wrong secret)
    - RateLimitUnavailableError → 503 Service Unavailable (fail-closed policy)

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    if isinstance(exc, RateLimitAppError):
        return await rate_limit_error_handler(request, exc)

    status_code = 400  # Default: client error
    if isinstance(exc, AuthenticationAppError):
        status_code = 401
    elif isinstance(exc, RateLimitUnavailableError):
        status_code = 503

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        }
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }

    # Include details only if present (optional structured context)
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or exception text reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        }
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.

    Example:
        >>> from fastapi import FastAPI
        >>> from app.core.exception_handlers import setup_exception_handlers
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(RateLimitAppError)(rate_limit_error_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
