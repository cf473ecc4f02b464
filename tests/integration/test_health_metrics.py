"""Integration tests for /health, /healthz and /metrics endpoints."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from saas_platform.app.config import Settings
from saas_platform.app.db.inmemory import InMemoryTenantRegistry
from saas_platform.app.main import create_app

HEALTH = "saas_platform.app.api.routes.health"


@pytest.fixture
def client(settings: Settings) -> TestClient:
    """Client on a central host (health routes bypass tenancy)."""
    app = create_app(
        settings,
        central_engine=create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=NullPool),
        registry=InMemoryTenantRegistry(),
    )
    return TestClient(app, base_url="http://unknown.example.com")


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    def test_health_is_always_ok(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_healthz_checks_real_sqlite_database(self, client: TestClient) -> None:
        """Without mocks the central database and missing Redis report ok."""
        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["components"]["db"] == "ok"
        assert data["components"]["redis"] == "not_configured"
        assert data["components"]["tenant_engines"] == 0

    @patch(f"{HEALTH}.check_redis", new_callable=AsyncMock)
    @patch(f"{HEALTH}.check_db", new_callable=AsyncMock)
    def test_healthz_returns_200_when_all_ok(
        self, mock_check_db: AsyncMock, mock_check_redis: AsyncMock, client: TestClient
    ) -> None:
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["components"]["db"] == "ok"
        assert data["components"]["redis"] == "ok"

    @patch(f"{HEALTH}.check_redis", new_callable=AsyncMock)
    @patch(f"{HEALTH}.check_db", new_callable=AsyncMock)
    def test_healthz_returns_503_when_db_fails(
        self, mock_check_db: AsyncMock, mock_check_redis: AsyncMock, client: TestClient
    ) -> None:
        mock_check_db.return_value = (False, "connection refused")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["db"] == "connection refused"

    @patch(f"{HEALTH}.check_redis", new_callable=AsyncMock)
    @patch(f"{HEALTH}.check_db", new_callable=AsyncMock)
    def test_healthz_returns_503_when_redis_fails(
        self, mock_check_db: AsyncMock, mock_check_redis: AsyncMock, client: TestClient
    ) -> None:
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (False, "timeout")

        response = client.get("/healthz")

        assert response.status_code == 503
        assert response.json()["components"]["redis"] == "timeout"


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    def test_metrics_returns_prometheus_format(self, client: TestClient) -> None:
        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "# HELP" in response.text

    def test_metrics_include_tenancy_outcomes(self, client: TestClient) -> None:
        client.get("/health")
        client.get("/api/v1/tenant")

        text = client.get("/metrics").text

        assert 'tenant_resolutions_total{outcome="bypass"}' in text
        assert 'tenant_resolutions_total{outcome="not_found"}' in text
        assert "tenant_pool_engines" in text
