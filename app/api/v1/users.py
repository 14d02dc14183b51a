"""
User endpoints: search, presence, profile and account management
"""

from typing import List

from fastapi import APIRouter, Query

from app.core.deps import CurrentUserDep, RegistryDep, SessionDep
from app.schemas.account import PasswordChange, ProfileUpdate, UserResponse, UserSummary
from app.services.auth_service import AuthService
from app.services.user_service import UserService

router = APIRouter()


@router.get("/search", response_model=List[UserSummary])
async def search_users(
    user: CurrentUserDep,
    session: SessionDep,
    q: str = Query(..., min_length=1, max_length=100),
):
    """Case-insensitive match on username or email; excludes the caller"""
    return await UserService(session).search(q, exclude_id=user.id)


@router.get("/online", response_model=List[UserSummary])
async def online_users(user: CurrentUserDep, session: SessionDep, registry: RegistryDep):
    """Users with at least one live socket in this process"""
    return await UserService(session).get_users(registry.online_user_ids())


@router.put("/profile", response_model=UserResponse)
async def update_profile(data: ProfileUpdate, user: CurrentUserDep, session: SessionDep):
    return await UserService(session).update_profile(user, data)


@router.put("/password")
async def change_password(data: PasswordChange, user: CurrentUserDep, session: SessionDep):
    await AuthService(session).change_password(user, data.current_password, data.new_password)
    return {"success": True, "message": "Password updated successfully"}


@router.delete("/account")
async def delete_account(user: CurrentUserDep, session: SessionDep):
    """Deactivate the caller's own account"""
    await UserService(session).deactivate(user)
    return {"success": True, "message": "Account deactivated successfully"}


@router.get("/{user_id}", response_model=UserSummary)
async def get_user(user_id: str, user: CurrentUserDep, session: SessionDep):
    return await UserService(session).require_user(user_id)
