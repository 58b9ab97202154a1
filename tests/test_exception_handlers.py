"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    RateLimitAppError,
    RateLimitUnavailableError,
)
from app.core.exception_handlers import setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    """Create test client with handlers enabled."""
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_base_app_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def endpoint():
            raise AppError(code="test_validation", message="Test validation error")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "test_validation"
        assert data["error"]["message"] == "Test validation error"
        assert "request_id" in data["error"]

    def test_authentication_error_returns_401(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-auth")
        async def endpoint():
            raise AuthenticationAppError(code="unauthorized", message="Unauthorized")

        response = client.get("/test-auth")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

    def test_unavailable_store_returns_503(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-store")
        async def endpoint():
            raise RateLimitUnavailableError(
                code="rate_limit_unavailable",
                message="Request admission is temporarily unavailable.",
                details={"policy": "payment"},
            )

        response = client.get("/test-store")

        assert response.status_code == 503
        assert response.json()["error"]["details"] == {"policy": "payment"}


class TestRateLimitHandler:
    """Test the 429 rendering of RateLimitAppError."""

    def test_rate_limit_error_returns_429_body(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-limited")
        async def endpoint():
            raise RateLimitAppError(
                code="rate_limit_exceeded",
                message="Rate limit exceeded. Please try again later.",
                reset_time=1_700_000_000_000,
                headers={"X-RateLimit-Limit": "5", "X-RateLimit-Remaining": "0"},
            )

        response = client.get("/test-limited")

        assert response.status_code == 429
        assert response.json() == {
            "error": "Too many requests",
            "message": "Rate limit exceeded. Please try again later.",
            "resetTime": 1_700_000_000_000,
        }
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "0"

    def test_rate_limit_error_is_an_app_error(self) -> None:
        exc = RateLimitAppError(code="rate_limit_exceeded", message="limited", reset_time=1)

        assert isinstance(exc, AppError)
        assert str(exc) == "limited"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-crash")
        async def endpoint():
            raise RuntimeError("database connection failed")

        response = client.get("/test-crash")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "database connection" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        response = asyncio.run(general_exception_handler(request, ValueError("Test error with details")))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert data["error"]["code"] == "internal_server_error"
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    """Integration tests for exception handler setup."""

    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert RateLimitAppError in app_with_handlers.exception_handlers
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
