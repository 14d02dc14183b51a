"""
Fixed-window request rate limiting backed by Redis

One counter per client address and window. Redis failures fail open.
"""

from fastapi import Request
from redis.asyncio import Redis

from app.core.config import settings
from app.core.errors import RateLimitError
from app.core.logging import get_logger
from app.infra.redis import get_client

logger = get_logger(__name__)


class RateLimiter:
    def __init__(self, redis: Redis, limit: int, window_seconds: int, prefix: str = "ratelimit"):
        self.redis = redis
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix

    def _key(self, identity: str) -> str:
        return f"{self.prefix}:{identity}"

    async def hit(self, identity: str) -> tuple[bool, int]:
        """
        Count one request.
        Returns (allowed, seconds until the window resets).
        """
        key = self._key(identity)
        try:
            current = await self.redis.incr(key)
            if current == 1:
                await self.redis.expire(key, self.window_seconds)
            ttl = await self.redis.ttl(key)
            if ttl is None or ttl < 0:
                # Counter lost its expiry; start a fresh window
                await self.redis.expire(key, self.window_seconds)
                ttl = self.window_seconds
        except Exception as e:
            logger.error(f"Rate limiting error: {e}")
            return True, 0  # Allow on error
        return current <= self.limit, int(ttl)


def client_address(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """Router dependency limiting every API request per client address"""
    if not settings.rate_limit_enabled:
        return

    client = get_client()
    try:
        limiter = RateLimiter(client, settings.rate_limit_requests, settings.rate_limit_window_seconds)
        allowed, retry_after = await limiter.hit(client_address(request))
    finally:
        await client.aclose()

    if not allowed:
        logger.warning(f"Rate limit exceeded for {client_address(request)} on {request.url.path}")
        raise RateLimitError(
            "Too many requests from this IP, please try again later.",
            headers={"Retry-After": str(retry_after)},
        )
