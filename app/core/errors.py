"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    policy: str
    http_status: int
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class AuthenticationAppError(AppError):
    """Raised when a shared secret or API key check fails."""


@dataclass
class RateLimitAppError(AppError):
    """Raised by route dependencies when a request is not admitted.

    Attributes:
        reset_time: UNIX epoch milliseconds when the window resets.
        headers: X-RateLimit-* headers to attach to the 429 response.
    """

    reset_time: int | None = None
    headers: dict[str, str] | None = None


class RateLimitUnavailableError(AppError):
    """Raised when the counter store fails under a fail-closed policy."""
