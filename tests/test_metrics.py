"""
Tests for the Prometheus metrics endpoint.
"""

import pytest
from httpx import AsyncClient

from conftest import sign_up


@pytest.mark.asyncio
async def test_metrics_endpoint_exposed(client: AsyncClient):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "# TYPE" in response.text


@pytest.mark.asyncio
async def test_metrics_record_templated_routes(client: AsyncClient):
    user, token = await sign_up(client, "Ann Lee", "ann@example.com")
    await client.get(f"/users/{user['id']}", headers={"Cookie": f"token={token}"})

    content = (await client.get("/metrics")).text

    assert 'handler="/auth/sign-up"' in content
    assert 'handler="/users/{user_id}"' in content


@pytest.mark.asyncio
async def test_metrics_skip_probes(client: AsyncClient):
    await client.get("/health")
    await client.get("/metrics")

    content = (await client.get("/metrics")).text

    assert 'handler="/health"' not in content
    assert 'handler="/metrics"' not in content
