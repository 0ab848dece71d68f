"""
Tests for the HTTP middleware stack: security headers, request IDs and
graceful shutdown.
"""

import json
from unittest.mock import Mock

import pytest
from httpx import AsyncClient
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request

from acquisitions.config import settings
from acquisitions.main import app, rate_limit_exceeded_handler, shutdown_manager
from conftest import sign_up


@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [
    ("GET", "/"),
    ("GET", "/health"),
    ("GET", "/users"),
    ("GET", "/does-not-exist"),
    ("POST", "/auth/sign-out"),
])
async def test_security_headers_on_every_response(client: AsyncClient, method, path):
    response = await client.request(method, path)

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert response.headers["Cache-Control"] == "no-store"
    assert "default-src 'self'" in response.headers["Content-Security-Policy"]


@pytest.mark.asyncio
async def test_hsts_only_in_production(client: AsyncClient, monkeypatch):
    response = await client.get("/health")
    assert "Strict-Transport-Security" not in response.headers

    monkeypatch.setattr(settings, "APP_ENV", "production")
    response = await client.get("/health")
    assert response.headers["Strict-Transport-Security"].startswith("max-age=")


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient):
    first = await client.get("/")
    second = await client.get("/")

    assert first.headers["X-Request-ID"]
    assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


@pytest.mark.asyncio
async def test_token_not_written_to_logs(client: AsyncClient, caplog):
    _, token = await sign_up(client, "Ann Lee", "ann@example.com")

    with caplog.at_level("DEBUG", logger="acquisitions"):
        await client.get("/users/1", headers={"Cookie": f"token={token}"})

    assert token not in caplog.text


@pytest.mark.asyncio
async def test_requests_rejected_while_shutting_down(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200

    original_state = shutdown_manager.is_shutting_down
    shutdown_manager.is_shutting_down = True
    try:
        response = await client.get("/health")
        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "SERVICE_UNAVAILABLE"
        assert "Retry-After" in response.headers
    finally:
        shutdown_manager.is_shutting_down = original_state


@pytest.mark.asyncio
async def test_active_request_counter_settles(client: AsyncClient):
    before = shutdown_manager.active_requests
    await client.get("/")
    await client.get("/does-not-exist")
    assert shutdown_manager.active_requests == before


@pytest.mark.asyncio
async def test_rate_limit_response_uses_error_envelope():
    request = Request({"type": "http", "method": "POST", "path": "/auth/sign-in", "headers": [], "app": app})
    exc = RateLimitExceeded(Mock(error_message=None, limit="10 per 1 minute"))

    response = await rate_limit_exceeded_handler(request, exc)

    assert response.status_code == 429
    body = json.loads(response.body)
    assert body["detail"]["error"] == "RATE_LIMITED"
    assert "10 per 1 minute" in body["detail"]["message"]
