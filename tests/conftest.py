"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app import so settings (and the
policy set built from them) see test values instead of a local .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("APP_CRON_SECRET", "test-cron-secret")
os.environ.setdefault("APP_METRICS_API_KEY", "test-metrics-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterator  # noqa: E402

import pytest  # noqa: E402

from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter  # noqa: E402
from app.core.rate_limit import set_rate_limiter  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_rate_limiter() -> Iterator[InMemoryFixedWindowRateLimiter]:
    """Give every test its own empty process-wide limiter."""
    limiter = InMemoryFixedWindowRateLimiter()
    set_rate_limiter(limiter)
    yield limiter
    set_rate_limiter(None)
