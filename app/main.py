"""
FastAPI Application Entry Point
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from app.api.v1 import ws
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.errors import (
    AppError,
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.core.logging import RequestIDMiddleware, get_logger, setup_logging
from app.core.rate_limit import enforce_rate_limit
from app.infra.db import AsyncSessionLocal, close_db_connection, create_tables
from app.infra.redis import close_redis_pool, init_redis_pool
from app.realtime.gateway import RealtimeGateway
from app.realtime.registry import PresenceRegistry
from app.realtime.rooms import RoomManager
from app.services.user_service import UserService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    await init_redis_pool()
    if settings.is_sqlite:
        await create_tables()

    # The registry starts empty, so persisted online flags are stale
    try:
        async with AsyncSessionLocal() as session:
            reset = await UserService(session).reset_presence()
        logger.info(f"Presence reset for {reset} user(s)")
    except Exception as e:
        # Don't fail startup if the database is not reachable yet, but log it
        logger.error(f"Failed to reset presence: {e}")

    yield

    # Shutdown
    await app.state.gateway.shutdown()
    await close_redis_pool()
    await close_db_connection()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Chat Backend",
        description="Realtime messaging with direct and group conversations",
        version="0.1.0",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )

    # Realtime state lives for the whole process
    app.state.registry = PresenceRegistry()
    app.state.rooms = RoomManager()
    app.state.gateway = RealtimeGateway(app.state.registry, app.state.rooms, AsyncSessionLocal)

    # Middleware
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_credentials,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )

    # Routes
    app.include_router(
        api_router,
        prefix=settings.api_prefix,
        dependencies=[Depends(enforce_rate_limit)],
    )
    app.include_router(ws.router, prefix=settings.api_prefix, tags=["websocket"])

    # Exception Handlers
    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app


app = create_app()
