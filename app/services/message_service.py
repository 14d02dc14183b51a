"""
Message Service

Send, edit, soft delete, read receipts and unread accounting.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.time import ensure_utc, utcnow
from app.models.conversation import Conversation
from app.models.message import Message, MessageReceipt
from app.services.conversation_service import ConversationService

logger = get_logger(__name__)


def edit_deadline(message: Message) -> datetime:
    return ensure_utc(message.created_at) + timedelta(seconds=settings.message_edit_window_seconds)


class MessageService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.conversations = ConversationService(session)

    async def get(self, message_id: str) -> Optional[Message]:
        stmt = (
            select(Message)
            .where(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def require(self, message_id: str) -> Message:
        message = await self.get(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    async def send(
        self,
        conversation: Conversation,
        sender_id: str,
        content: str,
        kind: str = "text",
        reply_to_id: Optional[str] = None,
        file_url: Optional[str] = None,
        file_name: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> Message:
        """
        Persist a message from a participant and move the conversation pointer.

        Caller is responsible for the membership check.
        """
        if not conversation.is_active:
            raise ValidationError("This conversation is no longer active")
        if reply_to_id:
            original = await self.get(reply_to_id)
            if original is None or original.conversation_id != conversation.id:
                raise ValidationError("Invalid reply message ID")

        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            content=content,
            kind=kind,
            reply_to_id=reply_to_id or None,
            file_url=file_url,
            file_name=file_name,
            file_size=file_size,
        )
        self.session.add(message)
        await self.session.commit()
        message_id, created_at = message.id, message.created_at

        # Separate write; see ConversationService.record_message
        await self.conversations.record_message(conversation.id, message_id, created_at)
        return await self.require(message_id)

    async def list_for_conversation(
        self, conversation_id: str, page: int = 1, limit: int = 50
    ) -> tuple[List[Message], bool]:
        """Page of visible messages, newest page first, oldest-first within the page"""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id, Message.is_deleted.is_(False))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        messages = list(result.scalars().all())
        has_more = len(messages) == limit
        messages.reverse()
        return messages, has_more

    async def _own_live_message(self, message_id: str, user_id: str, action: str) -> Message:
        message = await self.get(message_id)
        if message is None or message.sender_id != user_id or message.is_deleted:
            raise NotFoundError(f"Message not found or you are not authorized to {action} it")
        return message

    async def edit(
        self, message_id: str, user_id: str, content: str, now: Optional[datetime] = None
    ) -> Message:
        message = await self._own_live_message(message_id, user_id, "edit")
        now = now or utcnow()
        if now > edit_deadline(message):
            raise ValidationError("Message is too old to edit")

        message.edit(content, now=now)
        await self.session.commit()
        return await self.require(message.id)

    async def delete(self, message_id: str, user_id: str) -> Message:
        message = await self._own_live_message(message_id, user_id, "delete")
        message.soft_delete()
        await self.session.commit()
        return message

    async def moderate_delete(self, message_id: str) -> Message:
        """Soft delete on behalf of an admin; ownership is not required"""
        message = await self.require(message_id)
        if not message.is_deleted:
            message.soft_delete()
            await self.session.commit()
        return message

    async def mark_read(self, message: Message, user_id: str) -> bool:
        """Idempotent; returns True when a new receipt was written"""
        if not message.mark_read(user_id):
            return False
        try:
            await self.session.commit()
        except IntegrityError:
            # Concurrent receipt for the same reader already landed
            await self.session.rollback()
            return False
        return True

    async def mark_many_read(
        self, conversation_id: str, user_id: str, message_ids: Sequence[str]
    ) -> List[str]:
        """
        Acknowledge the given messages of one conversation.

        Unknown ids and ids from other conversations are skipped. Returns the
        ids that are read by user_id afterwards.
        """
        ids = list(dict.fromkeys(message_ids))
        acknowledged = []
        for message_id in ids:
            # Fresh load per id; a rolled-back receipt expires loaded state
            message = await self.get(message_id)
            if message is None or message.conversation_id != conversation_id:
                continue
            await self.mark_read(message, user_id)
            acknowledged.append(message_id)
        return acknowledged

    async def unread_count(self, conversation_id: str, user_id: str) -> int:
        """Messages from others, not deleted, without a receipt from user_id"""
        has_receipt = (
            select(MessageReceipt.id)
            .where(
                MessageReceipt.message_id == Message.id,
                MessageReceipt.user_id == user_id,
            )
            .exists()
        )
        stmt = select(func.count(Message.id)).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.is_deleted.is_(False),
            ~has_receipt,
        )
        return int(await self.session.scalar(stmt) or 0)

    async def count_all(self) -> int:
        return int(await self.session.scalar(select(func.count(Message.id))) or 0)

    async def count_by_sender(self, user_id: str) -> int:
        stmt = select(func.count(Message.id)).where(Message.sender_id == user_id)
        return int(await self.session.scalar(stmt) or 0)
