"""
Conversation endpoints

Every read is scoped to conversations the caller participates in.
"""

from typing import List

from fastapi import APIRouter, Response, status

from app.core.deps import CurrentUserDep, GatewayDep, SessionDep
from app.models.conversation import CONVERSATION_GROUP
from app.schemas.account import UserSummary
from app.schemas.conversation import (
    AddMembersRequest,
    AddMembersResponse,
    ConversationCreate,
    ConversationResponse,
    ConversationUpdate,
    MembersResponse,
)
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService

router = APIRouter()


async def _with_unread(session, conversation, user_id: str) -> ConversationResponse:
    unread = await MessageService(session).unread_count(conversation.id, user_id)
    return ConversationResponse.from_conversation(conversation, unread_count=unread)


@router.get("", response_model=List[ConversationResponse])
async def list_conversations(user: CurrentUserDep, session: SessionDep):
    conversations = await ConversationService(session).list_for_user(user.id)
    return [await _with_unread(session, c, user.id) for c in conversations]


@router.post("", response_model=ConversationResponse, status_code=status.HTTP_201_CREATED)
async def create_conversation(
    data: ConversationCreate, user: CurrentUserDep, session: SessionDep, response: Response
):
    """Create a group, or create/return the direct conversation for a pair"""
    conversation, created = await ConversationService(session).create(user.id, data)
    if not created:
        response.status_code = status.HTTP_200_OK
    return await _with_unread(session, conversation, user.id)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(conversation_id: str, user: CurrentUserDep, session: SessionDep):
    conversation = await ConversationService(session).require_for_participant(conversation_id, user.id)
    return await _with_unread(session, conversation, user.id)


@router.put("/{conversation_id}", response_model=ConversationResponse)
async def update_conversation(
    conversation_id: str, data: ConversationUpdate, user: CurrentUserDep, session: SessionDep
):
    service = ConversationService(session)
    conversation = await service.require_for_participant(conversation_id, user.id)
    conversation = await service.update(conversation, data)
    return await _with_unread(session, conversation, user.id)


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str, user: CurrentUserDep, session: SessionDep, gateway: GatewayDep
):
    """Hide a direct conversation for the caller, or leave a group"""
    service = ConversationService(session)
    conversation = await service.require_for_participant(conversation_id, user.id)
    leaves_group = conversation.type == CONVERSATION_GROUP
    await service.delete_for_user(conversation, user)
    if leaves_group:
        await gateway.evict(user.id, conversation_id)
    return {"success": True, "message": "Conversation deleted successfully"}


@router.get("/{conversation_id}/members", response_model=MembersResponse)
async def list_members(conversation_id: str, user: CurrentUserDep, session: SessionDep):
    conversation = await ConversationService(session).require_for_participant(conversation_id, user.id)
    members = [UserSummary.model_validate(p.user) for p in conversation.participants]
    return MembersResponse(
        conversation_id=conversation.id,
        name=conversation.name,
        created_by_id=conversation.created_by_id,
        participant_count=len(members),
        members=members,
    )


@router.get("/{conversation_id}/available-users", response_model=List[UserSummary])
async def available_users(conversation_id: str, user: CurrentUserDep, session: SessionDep):
    """Active users who are not members yet, for the add-members flow"""
    service = ConversationService(session)
    conversation = await service.require_for_participant(conversation_id, user.id)
    return await service.available_users(conversation)


@router.post("/{conversation_id}/members", response_model=AddMembersResponse)
async def add_members(
    conversation_id: str,
    data: AddMembersRequest,
    user: CurrentUserDep,
    session: SessionDep,
    gateway: GatewayDep,
):
    service = ConversationService(session)
    conversation = await service.require_for_participant(conversation_id, user.id)
    added, already = await service.add_members(conversation, user, data.user_ids)
    await gateway.notify_added([u.id for u in added], conversation_id)
    conversation = await service.require(conversation_id)
    return AddMembersResponse(
        added_users=[UserSummary.model_validate(u) for u in added],
        already_members=[UserSummary.model_validate(u) for u in already],
        total_members=len(conversation.participants),
    )


@router.delete("/{conversation_id}/members/{user_id}")
async def remove_member(
    conversation_id: str,
    user_id: str,
    user: CurrentUserDep,
    session: SessionDep,
    gateway: GatewayDep,
):
    service = ConversationService(session)
    conversation = await service.require_for_participant(conversation_id, user.id)
    removed = await service.remove_member(conversation, actor=user, target_id=user_id)
    await gateway.evict(user_id, conversation_id)
    return {
        "success": True,
        "message": f"{removed.username} removed from conversation",
        "removedUserId": user_id,
    }
