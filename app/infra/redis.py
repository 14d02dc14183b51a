"""
Redis infrastructure configuration

Redis client management.
"""

from typing import AsyncGenerator, Optional

from redis import asyncio as aioredis
from redis.asyncio import Redis

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

# Global redis pool
pool: Optional[aioredis.ConnectionPool] = None


def _build_pool() -> aioredis.ConnectionPool:
    return aioredis.ConnectionPool.from_url(
        settings.redis_url,
        db=settings.redis_db,
        encoding="utf-8",
        decode_responses=True,
    )


async def init_redis_pool():
    """Initialize Redis connection pool"""
    global pool
    pool = _build_pool()


async def close_redis_pool():
    """Close Redis connection pool"""
    global pool
    if pool:
        await pool.disconnect()
        pool = None


def get_client() -> Redis:
    """Client bound to the shared pool; caller closes it"""
    global pool
    if pool is None:
        pool = _build_pool()
    return aioredis.Redis(connection_pool=pool)


async def get_redis() -> AsyncGenerator[Redis, None]:
    """
    Dependency for getting Redis client.
    Uses connection pool.
    """
    client = get_client()
    try:
        yield client
    finally:
        await client.aclose()


async def check_redis(client: Redis) -> bool:
    try:
        return bool(await client.ping())
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
