"""Tests for the health, metrics and cron cleanup endpoints."""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.base import RateLimitPolicy
from app.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter
from app.core.rate_limit import set_rate_limiter
from app.main import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": "Bearer test-cron-secret"}


@pytest.fixture
def metrics_headers() -> dict[str, str]:
    return {"X-API-Key": "test-metrics-key"}


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        resp = client.get("/api/health")

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["services"] == {"rate_limiter": "healthy"}
        assert data["environment"] == "testing"
        assert "timestamp" in data
        assert "version" in data

    def test_degraded_when_limiter_fails(self, client: TestClient) -> None:
        broken = Mock()
        broken.is_allowed.side_effect = RuntimeError("down")
        broken.stats.side_effect = RuntimeError("down")
        set_rate_limiter(broken)

        resp = client.get("/api/health")

        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"
        assert resp.json()["services"]["rate_limiter"] == "unhealthy"


class TestMetrics:
    def test_requires_api_key(self, client: TestClient) -> None:
        resp = client.get("/api/metrics")

        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_rejects_wrong_key(self, client: TestClient) -> None:
        resp = client.get("/api/metrics", headers={"X-API-Key": "nope"})

        assert resp.status_code == 401

    def test_reports_counters_and_policies(self, client: TestClient, metrics_headers: dict[str, str]) -> None:
        client.get("/api/health")

        resp = client.get("/api/metrics", headers=metrics_headers)

        assert resp.status_code == 200
        data = resp.json()
        # health and this call share one general counter
        assert data["rate_limits"]["tracked_counters"] == 1
        assert data["rate_limits"]["by_policy"] == {"general": 1}
        assert data["rate_limits"]["policies"]["auth"] == {"window_ms": 900000, "max_requests": 10}
        assert data["system"]["uptime_seconds"] >= 0
        assert "testclient" not in resp.text

    def test_scraper_is_held_to_general_policy(self, client: TestClient, metrics_headers: dict[str, str]) -> None:
        clock = Mock(return_value=1_700_000_000.0)
        set_rate_limiter(InMemoryFixedWindowRateLimiter(clock=clock))

        statuses = []
        for i in range(12):
            clock.return_value = 1_700_000_000.0 + 30 * i
            resp = client.get("/api/metrics", headers=metrics_headers)
            statuses.append(resp.status_code)

        assert statuses == [200] * 12
        assert resp.headers["X-RateLimit-Limit"] == "100"
        assert resp.headers["X-RateLimit-Remaining"] == "88"


class TestCronCleanup:
    def test_requires_bearer_secret(self, client: TestClient) -> None:
        resp = client.post("/api/cron/cleanup", headers={"Authorization": "Bearer wrong"})

        assert resp.status_code == 401

    def test_rejects_other_schemes(self, client: TestClient) -> None:
        resp = client.post("/api/cron/cleanup", headers={"Authorization": "Basic test-cron-secret"})

        assert resp.status_code == 401

    def test_sweeps_expired_counters(self, client: TestClient, cron_headers: dict[str, str]) -> None:
        clock = Mock(return_value=1000.0)
        limiter = InMemoryFixedWindowRateLimiter(clock=clock)
        short = RateLimitPolicy(name="short", window_ms=1000, max_requests=1)
        limiter.is_allowed("ip:1.1.1.1", short)
        limiter.is_allowed("ip:2.2.2.2", short)
        set_rate_limiter(limiter)
        clock.return_value = 5000.0

        resp = client.post("/api/cron/cleanup", headers=cron_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["message"] == "Cleanup completed successfully"
        assert data["results"]["cleaned"] == {"rate_limit_counters": 2}
        # Only the counter for this request itself remains
        assert limiter.stats()["by_policy"] == {"general": 1}


def test_openapi_documents_rate_limits_and_security(client: TestClient) -> None:
    schema = client.get("/openapi.json").json()

    health = schema["paths"]["/api/health"]["get"]
    assert "429" in health["responses"]
    assert "X-RateLimit-Reset" in health["responses"]["429"]["headers"]

    cleanup = schema["paths"]["/api/cron/cleanup"]["post"]
    assert cleanup["security"] == [{"CronBearer": []}]
    assert schema["paths"]["/api/metrics"]["get"]["security"] == [{"MetricsApiKey": []}]
    assert "CronBearer" in schema["components"]["securitySchemes"]
