"""
Rate limiting tests against an in-memory Redis stand-in
"""

import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.core.rate_limit import RateLimiter


class FakeRedis:
    def __init__(self):
        self.counters = {}
        self.expiry = {}

    async def incr(self, key):
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    async def expire(self, key, seconds):
        self.expiry[key] = seconds

    async def ttl(self, key):
        return self.expiry.get(key, -1)

    async def aclose(self):
        pass


class BrokenRedis(FakeRedis):
    async def incr(self, key):
        raise ConnectionError("redis down")


@pytest.mark.asyncio
async def test_fixed_window_limit():
    limiter = RateLimiter(FakeRedis(), limit=2, window_seconds=900)

    assert await limiter.hit("1.2.3.4") == (True, 900)
    assert await limiter.hit("1.2.3.4") == (True, 900)
    assert await limiter.hit("1.2.3.4") == (False, 900)
    # Other clients have their own window
    assert (await limiter.hit("5.6.7.8"))[0] is True


@pytest.mark.asyncio
async def test_redis_failure_fails_open():
    limiter = RateLimiter(BrokenRedis(), limit=1, window_seconds=900)
    assert (await limiter.hit("1.2.3.4"))[0] is True
    assert (await limiter.hit("1.2.3.4"))[0] is True


@pytest.mark.asyncio
async def test_api_returns_429_with_retry_after(client: AsyncClient, monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
    monkeypatch.setattr(settings, "rate_limit_requests", 2)
    monkeypatch.setattr("app.core.rate_limit.get_client", lambda: fake)

    assert (await client.get("/api/v1/health")).status_code == 200
    assert (await client.get("/api/v1/health")).status_code == 200

    limited = await client.get("/api/v1/health")
    assert limited.status_code == 429
    assert limited.headers["Retry-After"] == str(settings.rate_limit_window_seconds)
    assert limited.json()["error_code"] == "rate_limited"
