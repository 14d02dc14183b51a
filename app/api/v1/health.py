"""
Health check endpoint
"""

from fastapi import APIRouter

from app.core.deps import RedisDep, RegistryDep, SessionDep
from app.core.time import to_utc_iso
from app.infra.db import check_database
from app.infra.redis import check_redis

router = APIRouter()


@router.get("/health")
async def health(session: SessionDep, redis: RedisDep, registry: RegistryDep):
    """Liveness of the API and its backing stores"""
    return {
        "api": "ok",
        "database": "ok" if await check_database(session) else "error",
        "redis": "ok" if await check_redis(redis) else "error",
        "online": registry.count(),
        "timestamp": to_utc_iso(),
    }
