"""
Admin endpoints

Admin principals only; each route is gated by one role permission.
"""

from datetime import timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from app.core.deps import GatewayDep, RegistryDep, SessionDep, require_permission
from app.core.logging import get_logger
from app.core.time import utcnow
from app.models.account import (
    PERMISSION_ADMIN_MANAGEMENT,
    PERMISSION_ANALYTICS_VIEW,
    PERMISSION_CONVERSATION_MANAGEMENT,
    PERMISSION_MESSAGE_MANAGEMENT,
    PERMISSION_USER_MANAGEMENT,
    Admin,
)
from app.schemas.account import AdminCreate, AdminResponse, UserResponse, UserSummary
from app.schemas.admin import (
    ConversationPage,
    DashboardResponse,
    DashboardStats,
    DeleteResult,
    Pagination,
    UserActivity,
    UserDetail,
    UserPage,
)
from app.schemas.conversation import ConversationResponse
from app.services.auth_service import AuthService
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService
from app.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter()


@router.get("/stats", response_model=DashboardResponse)
async def dashboard_stats(
    session: SessionDep,
    registry: RegistryDep,
    admin: Admin = Depends(require_permission(PERMISSION_ANALYTICS_VIEW)),
):
    users = UserService(session)
    stats = DashboardStats(
        total_users=await users.count(),
        active_users=await users.count(is_active=True),
        online_users=registry.count(),
        total_conversations=await ConversationService(session).count_all(),
        total_messages=await MessageService(session).count_all(),
        new_users_this_week=await users.count(
            is_active=True, created_since=utcnow() - timedelta(days=7)
        ),
    )
    recent = [UserSummary.model_validate(u) for u in await users.recent()]
    return DashboardResponse(stats=stats, recent_users=recent)


@router.get("/users", response_model=UserPage)
async def list_users(
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_USER_MANAGEMENT)),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None, alias="isActive"),
):
    users, total = await UserService(session).list_users(page, limit, search, is_active)
    return UserPage(
        users=[UserResponse.model_validate(u) for u in users],
        pagination=Pagination.of(page, limit, total),
    )


@router.get("/users/{user_id}", response_model=UserDetail)
async def user_details(
    user_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_USER_MANAGEMENT)),
):
    user = await UserService(session).require_user(user_id, active_only=False)
    return UserDetail(
        user=UserResponse.model_validate(user),
        stats=UserActivity(
            conversation_count=await ConversationService(session).count_for_user(user_id),
            message_count=await MessageService(session).count_by_sender(user_id),
        ),
    )


@router.patch("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_USER_MANAGEMENT)),
):
    service = UserService(session)
    user = await service.require_user(user_id, active_only=False)
    user = await service.deactivate(user)
    logger.info(f"Admin {admin.id} deactivated user {user_id}")
    return user


@router.patch("/users/{user_id}/reactivate", response_model=UserResponse)
async def reactivate_user(
    user_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_USER_MANAGEMENT)),
):
    service = UserService(session)
    user = await service.require_user(user_id, active_only=False)
    user = await service.reactivate(user)
    logger.info(f"Admin {admin.id} reactivated user {user_id}")
    return user


@router.get("/conversations", response_model=ConversationPage)
async def list_conversations(
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_CONVERSATION_MANAGEMENT)),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    conversation_type: Optional[Literal["direct", "group"]] = Query(None, alias="type"),
):
    conversations, total = await ConversationService(session).list_all(page, limit, conversation_type)
    return ConversationPage(
        conversations=[ConversationResponse.from_conversation(c) for c in conversations],
        pagination=Pagination.of(page, limit, total),
    )


@router.delete("/conversations/bulk/type/{conversation_type}", response_model=DeleteResult)
async def delete_conversations_by_type(
    conversation_type: Literal["direct", "group"],
    session: SessionDep,
    gateway: GatewayDep,
    admin: Admin = Depends(require_permission(PERMISSION_CONVERSATION_MANAGEMENT)),
):
    service = ConversationService(session)
    ids = await service.ids_of_type(conversation_type)
    deleted = await service.hard_delete(ids)
    for conversation_id in ids:
        gateway.close_conversation(conversation_id)
    logger.warning(f"Admin {admin.id} deleted all {conversation_type} conversations ({deleted})")
    return DeleteResult(
        message=f"Deleted {deleted} {conversation_type} conversation(s)", deleted_count=deleted
    )


@router.delete("/conversations/{conversation_id}", response_model=DeleteResult)
async def delete_conversation(
    conversation_id: str,
    session: SessionDep,
    gateway: GatewayDep,
    admin: Admin = Depends(require_permission(PERMISSION_CONVERSATION_MANAGEMENT)),
):
    service = ConversationService(session)
    await service.require(conversation_id)
    deleted = await service.hard_delete([conversation_id])
    gateway.close_conversation(conversation_id)
    logger.info(f"Admin {admin.id} deleted conversation {conversation_id}")
    return DeleteResult(message="Conversation deleted successfully", deleted_count=deleted)


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_MESSAGE_MANAGEMENT)),
):
    await MessageService(session).moderate_delete(message_id)
    logger.info(f"Admin {admin.id} deleted message {message_id}")
    return {"success": True, "message": "Message deleted successfully"}


@router.get("/admins", response_model=List[AdminResponse])
async def list_admins(
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_ADMIN_MANAGEMENT)),
):
    return [AdminResponse.from_admin(a) for a in await AuthService(session).list_admins()]


@router.post("/admins", response_model=AdminResponse, status_code=status.HTTP_201_CREATED)
async def create_admin(
    data: AdminCreate,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_ADMIN_MANAGEMENT)),
):
    created = await AuthService(session).create_admin(data, created_by=admin)
    return AdminResponse.from_admin(created)


@router.get("/admins/{admin_id}", response_model=AdminResponse)
async def admin_details(
    admin_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_ADMIN_MANAGEMENT)),
):
    return AdminResponse.from_admin(await AuthService(session).require_admin(admin_id))


@router.patch("/admins/{admin_id}/deactivate", response_model=AdminResponse)
async def deactivate_admin(
    admin_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_ADMIN_MANAGEMENT)),
):
    service = AuthService(session)
    target = await service.set_admin_active(await service.require_admin(admin_id), False, actor=admin)
    return AdminResponse.from_admin(target)


@router.patch("/admins/{admin_id}/reactivate", response_model=AdminResponse)
async def reactivate_admin(
    admin_id: str,
    session: SessionDep,
    admin: Admin = Depends(require_permission(PERMISSION_ADMIN_MANAGEMENT)),
):
    service = AuthService(session)
    target = await service.set_admin_active(await service.require_admin(admin_id), True, actor=admin)
    return AdminResponse.from_admin(target)
