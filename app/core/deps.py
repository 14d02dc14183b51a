"""
Dependency Injection

FastAPI dependencies for routes.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import AuthenticationError, AuthorizationError
from app.infra.db import get_db
from app.infra.redis import get_redis
from app.models.account import Account, Admin, User
from app.realtime.gateway import RealtimeGateway
from app.realtime.registry import PresenceRegistry
from app.services.auth_service import AuthService

# OAuth2 scheme; missing credentials are reported through AppError handlers
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login", auto_error=False)

# Type aliases for common dependencies
SessionDep = Annotated[AsyncSession, Depends(get_db)]
RedisDep = Annotated[Redis, Depends(get_redis)]


async def get_current_account(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    session: SessionDep,
) -> Account:
    """Validate the bearer token and load the principal behind it"""
    if not token:
        raise AuthenticationError("Access token required")
    return await AuthService(session).resolve_principal(token)


async def get_current_user(account: Annotated[Account, Depends(get_current_account)]) -> User:
    if not isinstance(account, User):
        raise AuthorizationError("User access required")
    return account


async def get_current_admin(account: Annotated[Account, Depends(get_current_account)]) -> Admin:
    if not isinstance(account, Admin):
        raise AuthorizationError("Admin access required")
    return account


CurrentAccountDep = Annotated[Account, Depends(get_current_account)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]
CurrentAdminDep = Annotated[Admin, Depends(get_current_admin)]


def require_permission(permission: str) -> Callable:
    """Admin dependency that also checks one role permission"""

    async def checker(admin: CurrentAdminDep) -> Admin:
        if not admin.has_permission(permission):
            raise AuthorizationError(f"Permission '{permission}' required")
        return admin

    return checker


def get_registry(request: Request) -> PresenceRegistry:
    return request.app.state.registry


def get_gateway(request: Request) -> RealtimeGateway:
    return request.app.state.gateway


RegistryDep = Annotated[PresenceRegistry, Depends(get_registry)]
GatewayDep = Annotated[RealtimeGateway, Depends(get_gateway)]
