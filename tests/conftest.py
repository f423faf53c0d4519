"""Shared fixtures for telemetry API tests."""
import pytest
from fastapi.testclient import TestClient
from telemetry_api.config import Settings
from telemetry_api.main import create_app
from telemetry_api.rate_limit import FixedWindowRateLimiter
from telemetry_api.storage import InMemoryStore


@pytest.fixture
def settings():
    return Settings(LOG_JSON=False, STORAGE_BACKEND="memory")


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def rate_limiter():
    return FixedWindowRateLimiter(permit_limit=1000, window_seconds=60)


@pytest.fixture
def app(settings, store, rate_limiter):
    return create_app(settings=settings, store=store, rate_limiter=rate_limiter)


@pytest.fixture
def client(app):
    """Create test client"""
    return TestClient(app)
