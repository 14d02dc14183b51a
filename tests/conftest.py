"""
Conftest
"""

import os

# Settings are read at import time; configure before importing the app
os.environ.setdefault("ENV", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-chat-backend-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.deps import get_db
from app.core.security import create_access_token
from app.infra.redis import get_redis
from app.main import app
from app.models.account import Admin, User
from app.models.base import Base
from app.realtime.connection import Connection
from app.realtime.gateway import RealtimeGateway
from app.realtime.registry import PresenceRegistry
from app.realtime.rooms import RoomManager
from app.schemas.account import AdminCreate
from app.schemas.auth import UserRegister
from app.schemas.conversation import ConversationCreate
from app.services.auth_service import AuthService
from app.services.conversation_service import ConversationService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
USER_PWD = "password123"
ADMIN_PWD = "adminpass123"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis():
    redis = AsyncMock()
    redis.ping.return_value = True
    return redis


@pytest.fixture
def gateway(session_factory) -> RealtimeGateway:
    return RealtimeGateway(PresenceRegistry(), RoomManager(), session_factory)


@pytest.fixture
async def client(session_factory, fake_redis, gateway) -> AsyncGenerator[AsyncClient, None]:
    # One session per request, like get_db
    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        yield fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    app.state.registry = gateway.registry
    app.state.rooms = gateway.rooms
    app.state.gateway = gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory):
    async def _make_user(username: str, email: Optional[str] = None, password: str = USER_PWD) -> User:
        async with session_factory() as session:
            return await AuthService(session).register_user(
                UserRegister(username=username, email=email or f"{username}@example.com", password=password)
            )

    return _make_user


@pytest.fixture
def make_admin(session_factory):
    async def _make_admin(username: str, role: str = "super_admin", password: str = ADMIN_PWD) -> Admin:
        async with session_factory() as session:
            return await AuthService(session).create_admin(
                AdminCreate(
                    username=username,
                    email=f"{username}@example.com",
                    password=password,
                    first_name="Test",
                    last_name="Admin",
                    role=role,
                )
            )

    return _make_admin


@pytest.fixture
def make_conversation(session_factory):
    async def _make_conversation(creator: User, *others: User, type: str = "direct", name: Optional[str] = None):
        async with session_factory() as session:
            conversation, _ = await ConversationService(session).create(
                creator.id,
                ConversationCreate(participants=[u.id for u in others], type=type, name=name),
            )
            return conversation

    return _make_conversation


@pytest.fixture
def auth_headers():
    return headers_for


@pytest.fixture
def connect(gateway):
    """Open a gateway connection for a user over a mocked socket"""

    async def _connect(user: User) -> Connection:
        connection = make_connection(user)
        await gateway.connect(connection)
        return connection

    return _connect


@pytest.fixture
def events_of():
    return sent_events


def headers_for(account) -> dict:
    token = create_access_token(account.id, account.kind)
    return {"Authorization": f"Bearer {token}"}


def make_connection(user: User) -> Connection:
    websocket = AsyncMock()
    return Connection(websocket, user.id, user.username)


def sent_events(connection: Connection, name: Optional[str] = None) -> list:
    """Envelopes pushed to a mocked socket, optionally filtered by event name"""
    envelopes = [call.args[0] for call in connection.websocket.send_json.call_args_list]
    if name is None:
        return envelopes
    return [e["data"] for e in envelopes if e["event"] == name]
