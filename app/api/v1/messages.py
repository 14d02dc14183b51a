"""
Message endpoints

REST sends share the socket persistence path but do not broadcast.
"""

from fastapi import APIRouter, Query, status

from app.core.config import settings
from app.core.deps import CurrentUserDep, SessionDep
from app.core.errors import NotFoundError
from app.schemas.message import MessageCreate, MessagePage, MessageResponse, MessageUpdate
from app.services.conversation_service import ConversationService
from app.services.message_service import MessageService

router = APIRouter()


@router.get("/{conversation_id}", response_model=MessagePage)
async def list_messages(
    conversation_id: str,
    user: CurrentUserDep,
    session: SessionDep,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    await ConversationService(session).require_for_participant(conversation_id, user.id)
    messages, has_more = await MessageService(session).list_for_conversation(conversation_id, page, limit)
    return MessagePage(
        messages=[MessageResponse.from_message(m) for m in messages],
        page=page,
        limit=limit,
        has_more=has_more,
    )


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(data: MessageCreate, user: CurrentUserDep, session: SessionDep):
    conversation = await ConversationService(session).require_for_participant(
        data.conversation_id, user.id
    )
    message = await MessageService(session).send(
        conversation,
        sender_id=user.id,
        content=data.content,
        kind=data.kind,
        reply_to_id=data.reply_to,
        file_url=data.file_url,
        file_name=data.file_name,
        file_size=data.file_size,
    )
    return MessageResponse.from_message(message)


@router.put("/{message_id}", response_model=MessageResponse)
async def edit_message(message_id: str, data: MessageUpdate, user: CurrentUserDep, session: SessionDep):
    """Only the sender, only within the edit window"""
    message = await MessageService(session).edit(message_id, user.id, data.content)
    return MessageResponse.from_message(message)


@router.delete("/{message_id}")
async def delete_message(message_id: str, user: CurrentUserDep, session: SessionDep):
    await MessageService(session).delete(message_id, user.id)
    return {"success": True, "message": "Message deleted successfully"}


@router.post("/{message_id}/read")
async def mark_read(message_id: str, user: CurrentUserDep, session: SessionDep):
    service = MessageService(session)
    message = await service.require(message_id)
    conversation = await ConversationService(session).get_for_participant(
        message.conversation_id, user.id
    )
    if conversation is None:
        raise NotFoundError("Message not found")
    await service.mark_read(message, user.id)
    return {"success": True, "message": "Message marked as read"}
