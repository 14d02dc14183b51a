"""
Health Endpoint Tests
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["api"] == "ok"
    assert data["database"] == "ok"
    assert data["redis"] == "ok"
    assert data["online"] == 0
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_health_reports_redis_failure(client: AsyncClient, fake_redis):
    fake_redis.ping.side_effect = ConnectionError("redis down")
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["redis"] == "error"
