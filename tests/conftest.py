"""
pytest configuration and shared fixtures for the RiskMap tests.

Key concern: tests must never touch the network or a real GPS. We achieve
this by:
  1. Driving every outbound HTTP call through httpx.MockTransport handlers
     (see fakes.py).
  2. Standing in for the device with AsyncMock providers (fakes.make_provider).
  3. Using a fresh LocationStore per test and emptying the module-level feed
     stores around every test, since the routes share them.
"""

import os

import pytest
from httpx import ASGITransport, AsyncClient

# Set env vars BEFORE importing the app so Settings picks them up correctly
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SIGNAL_FEED_URL", "")
os.environ.setdefault("REPORT_FEED_URL", "")


@pytest.fixture()
def store():
    from riskmap.services.location_store import LocationStore

    return LocationStore()


@pytest.fixture(autouse=True)
def empty_feeds():
    """The route tests share the module-level feeds; start every test empty."""
    from riskmap.services.feeds import report_feed, signal_feed

    signal_feed.clear()
    report_feed.clear()
    yield
    signal_feed.clear()
    report_feed.clear()


@pytest.fixture()
async def client():
    """
    HTTPX async test client wired to the FastAPI app.

    Usage:
        async def test_something(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    from riskmap.core.rate_limit import limiter
    from riskmap.main import app

    # Reset in-memory rate-limit counters so tests are independent.
    limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
