"""Integration tests for operational endpoints and response headers."""

import pytest
from httpx import AsyncClient

from gateway.api.routes import metrics as metrics_route
from gateway.core.config import Settings


@pytest.mark.asyncio
class TestOperationalEndpoints:
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    async def test_request_id_is_echoed_or_minted(self, client: AsyncClient):
        echoed = await client.get("/health", headers={"X-Request-ID": "req-abc"})
        minted = await client.get("/health")

        assert echoed.headers["X-Request-ID"] == "req-abc"
        assert minted.headers["X-Request-ID"]

    async def test_security_headers(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    async def test_metrics_exposes_gateway_series(self, client: AsyncClient):
        await client.get("/health")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "gateway_http_requests_total" in response.text

    async def test_unknown_route_uses_error_envelope(self, client: AsyncClient):
        response = await client.get("/api/timesheets")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}


STRONG = "s" * 40


def _production(**overrides) -> Settings:
    return Settings(
        database_url="postgresql://gateway@db/gateway",
        environment="production",
        jwt_secret=STRONG,
        api_key_pepper=STRONG,
        **overrides,
    )


@pytest.mark.asyncio
class TestProductionScrapeGuard:
    async def test_hidden_without_configured_token(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(metrics_route, "get_settings", lambda: _production())

        response = await client.get("/metrics")

        assert response.status_code == 404

    async def test_wrong_token_is_forbidden(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(metrics_route, "get_settings", lambda: _production(metrics_token="scrape-me"))

        response = await client.get("/metrics", headers={"X-Metrics-Token": "guess"})

        assert response.status_code == 403

    async def test_bearer_token_is_accepted(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(metrics_route, "get_settings", lambda: _production(metrics_token="scrape-me"))

        response = await client.get("/metrics", headers={"Authorization": "Bearer scrape-me"})

        assert response.status_code == 200
