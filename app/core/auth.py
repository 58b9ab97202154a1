"""Shared-secret checks for operational endpoints.

User authentication is handled upstream (the identity provider); this module
only guards the maintenance surface:

- scheduled jobs call ``/api/cron/*`` with ``Authorization: Bearer <CRON_SECRET>``
- monitoring scrapes ``/api/metrics`` with ``X-API-Key: <METRICS_API_KEY>``

Each secret is read from its ``APP_``-prefixed variable, or from the bare name.

Both are plain FastAPI dependencies raising AuthenticationAppError, which the
global exception handler turns into a 401.
"""

from __future__ import annotations

import hmac
import logging
from typing import Annotated

from fastapi import Header

from app.core.config import settings
from app.core.errors import AuthenticationAppError
from app.core.logging import hash_for_log

logger = logging.getLogger(__name__)


def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an Authorization header value.

    Examples:
        >>> parse_bearer_token("Bearer abc")
        'abc'
        >>> parse_bearer_token("Basic abc") is None
        True
        >>> parse_bearer_token(None) is None
        True
    """
    if not authorization:
        return None

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def validate_secret(provided: str | None, expected: str | None, *, purpose: str) -> None:
    """Compare a provided secret with the configured one in constant time.

    Args:
        provided: Secret sent by the caller, if any.
        expected: Configured secret, if any.
        purpose: Short label used in logs and error details ("cron", "metrics").

    Raises:
        AuthenticationAppError: If no secret is configured, or it does not match.
    """
    if not expected:
        logger.error(
            "auth.secret_not_configured",
            extra={"purpose": purpose},
        )
        raise AuthenticationAppError(
            code="secret_not_configured",
            message="Unauthorized",
            details={"hint": f"Configure the {purpose} secret to enable this endpoint"},
        )

    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning(
            "auth.invalid_secret",
            extra={
                "purpose": purpose,
                "secret_present": bool(provided),
                "secret_hash": hash_for_log(provided) if provided else None,
            },
        )
        raise AuthenticationAppError(code="unauthorized", message="Unauthorized")

    logger.debug("auth.success", extra={"purpose": purpose})


async def verify_cron_secret(
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """FastAPI dependency guarding scheduled-job endpoints."""
    validate_secret(
        parse_bearer_token(authorization),
        settings.app.cron_secret,
        purpose="cron",
    )


async def verify_metrics_key(
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding the metrics endpoint."""
    validate_secret(x_api_key, settings.app.metrics_api_key, purpose="metrics")
