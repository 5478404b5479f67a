"""
Shared test fixtures — in-memory counter store, tracker, FastAPI test client.
"""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from analytics_api.config import Settings
from analytics_api.main import app
from analytics_api.routes.pageview import get_store
from analytics_api.services.kv_store import CounterStore, MemoryCounterStore, StoreUnavailableError
from analytics_api.services.pageviews import PageviewTracker


# 2026-03-15 10:30 UTC, mid-month and mid-day
FIXED_NOW = datetime(2026, 3, 15, 10, 30, tzinfo=timezone.utc)


class BrokenStore(CounterStore):
    """Every call fails as if the backend were unreachable."""

    async def get(self, key):
        raise StoreUnavailableError("store down")

    async def put(self, key, value, expiration_seconds=None):
        raise StoreUnavailableError("store down")


# ── Stores / tracker ────────────────────────────────────

@pytest.fixture
def store():
    return MemoryCounterStore()


@pytest.fixture
def tracker(store):
    return PageviewTracker(store, clock=lambda: FIXED_NOW)


# ── Mock Settings ───────────────────────────────────────

@pytest.fixture(autouse=True)
def mock_settings():
    """Explicit settings for route tests — no .env."""
    test_settings = Settings(
        _env_file=None,
        analytics_store_url="memory://",
    )
    with patch("analytics_api.config.settings", test_settings), \
         patch("analytics_api.routes.pageview.settings", test_settings):
        yield test_settings


# ── FastAPI client ──────────────────────────────────────

def _client_for(store_value):
    app.dependency_overrides[get_store] = lambda: store_value
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture()
async def client(store):
    """Test client wired to the in-memory store."""
    async with _client_for(store) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def unconfigured_client():
    """Test client with no counter store (tracking not configured)."""
    async with _client_for(None) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def broken_client():
    """Test client whose store raises on every call."""
    async with _client_for(BrokenStore()) as ac:
        yield ac
    app.dependency_overrides.clear()
