"""
Authentication endpoints

Registration for users, one login for users and admins, token refresh.
"""

from typing import Union

from fastapi import APIRouter, status

from app.core.deps import CurrentAccountDep, SessionDep
from app.models.account import Admin, User
from app.schemas.account import AdminResponse, PasswordChange, UserResponse
from app.schemas.auth import LoginRequest, RefreshResponse, TokenResponse, UserRegister
from app.services.auth_service import AuthService
from app.services.user_service import UserService

router = APIRouter()


def account_view(account) -> Union[AdminResponse, UserResponse]:
    if isinstance(account, Admin):
        return AdminResponse.from_admin(account)
    return UserResponse.model_validate(account)


def token_response(service: AuthService, account) -> TokenResponse:
    token, expires_in = service.issue_token(account)
    return TokenResponse(
        access_token=token,
        user_type=account.kind,
        expires_in=expires_in,
        user=account_view(account),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(data: UserRegister, session: SessionDep):
    service = AuthService(session)
    user = await service.register_user(data)
    return token_response(service, user)


@router.post("/login", response_model=TokenResponse, summary="Login as user or admin")
async def login(data: LoginRequest, session: SessionDep):
    """
    Authenticate with email or username.
    - **401**: invalid credentials
    - **403**: account deactivated
    - **423**: account locked after repeated failures
    """
    service = AuthService(session)
    account = await service.authenticate(data.identifier, data.password)
    return token_response(service, account)


@router.post("/logout", summary="Logout")
async def logout(account: CurrentAccountDep, session: SessionDep):
    # Tokens are stateless; a user additionally goes offline
    if isinstance(account, User):
        await UserService(session).set_offline(account.id)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=Union[AdminResponse, UserResponse])
async def me(account: CurrentAccountDep):
    return account_view(account)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(account: CurrentAccountDep, session: SessionDep):
    token, expires_in = AuthService(session).issue_token(account)
    return RefreshResponse(access_token=token, expires_in=expires_in)


@router.put("/change-password", summary="Change password")
async def change_password(data: PasswordChange, account: CurrentAccountDep, session: SessionDep):
    """Works for users and admins; admins need at least 8 characters"""
    await AuthService(session).change_password(account, data.current_password, data.new_password)
    return {"success": True, "message": "Password changed successfully"}
