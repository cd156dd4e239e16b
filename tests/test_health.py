"""
Tests for the /health endpoint.

Verifies:
  - Returns HTTP 200 with status="ok" (API liveness check)
  - Returns expected JSON schema, including feed sizes
  - Root / endpoint returns API metadata
"""

import pytest

from riskmap.models.heatmap import DisasterSignal
from riskmap.services.feeds import signal_feed


@pytest.mark.asyncio
async def test_health_returns_200(client):
    """Health endpoint must always return 200 if the API process is alive."""
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_health_response_schema(client):
    """Health response must contain the required fields."""
    response = await client.get("/health")
    data = response.json()

    assert data["status"] == "ok"
    assert data["version"] == "0.1.0"
    assert data["environment"] == "test"
    assert data["signals"] == 0
    assert data["reports"] == 0


@pytest.mark.asyncio
async def test_health_counts_feed_items(client):
    signal_feed.replace([DisasterSignal(disaster_confidence=0.3)] * 3)
    data = (await client.get("/health")).json()
    assert data["signals"] == 3


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Root / must return API metadata with status=running."""
    response = await client.get("/")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "running"
    assert data["name"] == "RiskMap API"
    assert "version" in data


@pytest.mark.asyncio
async def test_docs_available_in_test_env(client):
    """
    OpenAPI docs should be available in non-production environments.
    (They're disabled when ENVIRONMENT=production.)
    """
    response = await client.get("/docs")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unknown_route_returns_404(client):
    """Unknown routes should return 404, not 500."""
    response = await client.get("/does-not-exist")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_reports_configured_environment(client, monkeypatch):
    from riskmap.core.config import settings

    monkeypatch.setattr(settings, "environment", "staging")
    data = (await client.get("/health")).json()
    assert data["environment"] == "staging"
