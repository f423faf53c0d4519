"""Tests for middleware components."""
import uuid
import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock
from telemetry_api.config import Settings
from telemetry_api.main import create_app
from telemetry_api.rate_limit import FixedWindowRateLimiter
from telemetry_api.storage import InMemoryStore
from factories import event_json


@pytest.fixture
def limited_app():
    store = InMemoryStore()
    limiter = FixedWindowRateLimiter(permit_limit=2, window_seconds=60, retry_after_seconds=30)
    return create_app(
        settings=Settings(LOG_JSON=False, MAX_REQUEST_BYTES=2048),
        store=store,
        rate_limiter=limiter,
    )


@pytest.mark.asyncio
async def test_correlation_id_generated(app):
    """Test that correlation ID is auto-generated if not provided."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/api/telemetry", json={"events": [event_json()]})
        assert response.status_code == 201
        uuid.UUID(response.headers["X-Correlation-ID"])


@pytest.mark.asyncio
async def test_correlation_id_preserved(app):
    """Test that provided correlation ID is preserved."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        correlation_id = "test-correlation-123"
        response = await client.get(
            "/api/telemetry", headers={"X-Correlation-ID": correlation_id}
        )
        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"] == correlation_id


def test_error_body_carries_correlation_id(client):
    r = client.post("/api/telemetry", json={"events": []}, headers={"X-Correlation-ID": "abc"})
    assert r.json()["correlation_id"] == "abc"
    assert r.json()["path"] == "/api/telemetry"


def test_rate_limit_rejects_after_permit_limit(limited_app):
    client = TestClient(limited_app)
    assert client.get("/api/telemetry").status_code == 200
    assert client.post("/api/telemetry", json={"events": [event_json()]}).status_code == 201

    r = client.get("/api/telemetry", headers={"X-Correlation-ID": "limited-1"})

    assert r.status_code == 429
    assert r.headers["retry-after"] == "30"
    data = r.json()
    assert data["error"] == "TooManyRequests"
    assert data["retry_after_seconds"] == 30
    assert data["correlation_id"] == "limited-1"


def test_rate_limited_request_never_reaches_storage(limited_app):
    store = limited_app.state.store
    store.insert_many = AsyncMock(return_value=1)
    client = TestClient(limited_app)
    client.get("/api/telemetry")
    client.get("/api/telemetry")

    r = client.post("/api/telemetry", json={"events": [event_json()]})

    assert r.status_code == 429
    store.insert_many.assert_not_called()


def test_rate_limit_does_not_apply_to_health(limited_app):
    client = TestClient(limited_app)
    for _ in range(5):
        assert client.get("/health/live").status_code == 200


def test_payload_too_large_rejection(limited_app):
    """Test that oversized payloads are rejected."""
    client = TestClient(limited_app)
    payload = {"events": [event_json(source="x" * 4096)]}

    r = client.post("/api/telemetry", json=payload)

    assert r.status_code == 413
    data = r.json()
    assert data["error"] == "PayloadTooLarge"
    assert data["max_size"] == 2048


def test_invalid_json_rejection(client):
    """Test that invalid JSON is rejected."""
    r = client.post(
        "/api/telemetry",
        content=b"{invalid json}",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidJSON"
