"""
Conversation Service

Direct/group thread lifecycle, membership and the last-message pointer.
"""

from typing import List, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import AsyncRetrying, stop_after_attempt, wait_random_exponential

from app.core.config import settings
from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.core.time import ensure_utc, utcnow
from app.models.account import User
from app.models.conversation import (
    CONVERSATION_DIRECT,
    CONVERSATION_GROUP,
    Conversation,
    ConversationParticipant,
    direct_key_for,
)
from app.models.message import Message, MessageReceipt
from app.schemas.conversation import ConversationCreate, ConversationUpdate
from app.services.user_service import UserService

logger = get_logger(__name__)


def validate_participant_count(conversation_type: str, count: int) -> None:
    """Direct threads hold exactly two people, groups at least two"""
    if conversation_type == CONVERSATION_DIRECT and count != 2:
        raise ValidationError("Direct conversations must have exactly 2 participants")
    if conversation_type == CONVERSATION_GROUP and count < 2:
        raise ValidationError("Group conversations must have at least 2 participants")


class ConversationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        stmt = (
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def require(self, conversation_id: str) -> Conversation:
        conversation = await self.get(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    async def get_for_participant(
        self, conversation_id: str, user_id: str, active_only: bool = False
    ) -> Optional[Conversation]:
        """Conversation only if user_id is currently in its participant set"""
        stmt = (
            select(Conversation)
            .join(ConversationParticipant)
            .where(
                Conversation.id == conversation_id,
                ConversationParticipant.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        if active_only:
            stmt = stmt.where(Conversation.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def require_for_participant(self, conversation_id: str, user_id: str) -> Conversation:
        conversation = await self.get_for_participant(conversation_id, user_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    async def find_direct(self, user_a: str, user_b: str) -> Optional[Conversation]:
        stmt = (
            select(Conversation)
            .where(
                Conversation.type == CONVERSATION_DIRECT,
                Conversation.direct_key == direct_key_for(user_a, user_b),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        """Active conversations the user has not removed, most recent first"""
        stmt = (
            select(Conversation)
            .join(ConversationParticipant)
            .where(
                ConversationParticipant.user_id == user_id,
                ConversationParticipant.removed_at.is_(None),
                Conversation.is_active.is_(True),
            )
            .order_by(Conversation.last_activity.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, creator_id: str, data: ConversationCreate) -> tuple[Conversation, bool]:
        """
        Create a conversation, or return the existing direct one for the pair.

        Returns (conversation, created).
        """
        # Creator is always a participant; keep first-seen order
        participant_ids = list(dict.fromkeys([*data.participants, creator_id]))
        validate_participant_count(data.type, len(participant_ids))

        if data.type == CONVERSATION_DIRECT:
            existing = await self.find_direct(*participant_ids)
            if existing is not None:
                await self._restore_for(existing, creator_id)
                return existing, False

        users = await UserService(self.session).get_users(participant_ids)
        if len(users) != len(participant_ids):
            raise ValidationError("One or more participants not found")

        now = utcnow()
        conversation = Conversation(
            type=data.type,
            name=data.name,
            description=data.description,
            created_by_id=creator_id,
            last_activity=now,
            direct_key=direct_key_for(*participant_ids) if data.type == CONVERSATION_DIRECT else None,
        )
        conversation.participants = [
            ConversationParticipant(user_id=user_id, joined_at=now) for user_id in participant_ids
        ]
        self.session.add(conversation)
        try:
            await self.session.commit()
        except IntegrityError:
            # Another request created the same direct pair first
            await self.session.rollback()
            if data.type != CONVERSATION_DIRECT:
                raise
            existing = await self.find_direct(*participant_ids)
            if existing is None:
                raise
            return existing, False

        logger.info(f"Created {data.type} conversation {conversation.id} by {creator_id}")
        return await self.require(conversation.id), True

    async def _restore_for(self, conversation: Conversation, user_id: str) -> None:
        participant = conversation.participant(user_id)
        if participant is not None and participant.removed_at is not None:
            participant.removed_at = None
            await self.session.commit()

    async def update(self, conversation: Conversation, data: ConversationUpdate) -> Conversation:
        if data.name is not None:
            conversation.name = data.name.strip()
        if data.description is not None:
            conversation.description = data.description.strip()
        await self.session.commit()
        return await self.require(conversation.id)

    async def delete_for_user(self, conversation: Conversation, user: User) -> None:
        """
        Per-user delete: hides a direct conversation for this user only,
        and leaves a group.
        """
        if conversation.type == CONVERSATION_DIRECT:
            participant = conversation.participant(user.id)
            if participant is not None and participant.removed_at is None:
                participant.removed_at = utcnow()
                await self.session.commit()
            return
        await self.remove_member(conversation, actor=user, target_id=user.id)

    async def add_members(
        self, conversation: Conversation, actor: User, user_ids: Sequence[str]
    ) -> tuple[List[User], List[User]]:
        """Returns (added, already members)"""
        if conversation.type != CONVERSATION_GROUP:
            raise ValidationError("This operation is only allowed for group conversations")
        if not conversation.has_participant(actor.id) and conversation.created_by_id != actor.id:
            raise AuthorizationError("You are not authorized to add members to this conversation")

        unique_ids = list(dict.fromkeys(user_ids))
        users = await UserService(self.session).get_users(unique_ids)
        if len(users) != len(unique_ids):
            raise ValidationError("One or more users not found or inactive")

        by_id = {u.id: u for u in users}
        added: List[User] = []
        already: List[User] = []
        now = utcnow()
        for user_id in unique_ids:
            user = by_id[user_id]
            if conversation.has_participant(user_id):
                already.append(user)
                continue
            conversation.participants.append(
                ConversationParticipant(user_id=user_id, joined_at=now)
            )
            added.append(user)

        if added:
            if not conversation.is_active:
                conversation.is_active = True
            await self.session.commit()
            names = ", ".join(u.username for u in added)
            verb = "was" if len(added) == 1 else "were"
            await self.post_system_message(
                conversation.id, actor.id, f"{names} {verb} added to the group"
            )
        return added, already

    async def available_users(self, conversation: Conversation, limit: int = 50) -> List[User]:
        """Active users that could be added to a group"""
        if conversation.type != CONVERSATION_GROUP:
            raise ValidationError("This operation is only allowed for group conversations")
        return await UserService(self.session).list_excluding(conversation.participant_ids, limit=limit)

    async def remove_member(self, conversation: Conversation, actor: User, target_id: str) -> User:
        """Creator may remove anyone; everyone else only themselves"""
        if conversation.type != CONVERSATION_GROUP:
            raise ValidationError("This operation is only allowed for group conversations")

        is_self = actor.id == target_id
        if not is_self and conversation.created_by_id != actor.id:
            raise AuthorizationError("You can only remove yourself from the group")

        target = await UserService(self.session).get_user(target_id, active_only=False)
        if target is None:
            raise NotFoundError("User not found")

        participant = conversation.participant(target_id)
        if participant is None:
            raise ValidationError("User is not a member of this conversation")

        conversation.participants.remove(participant)
        if len(conversation.participants) < 2:
            # Below the group minimum; archive instead of violating the invariant
            conversation.is_active = False
        await self.session.commit()

        text = f"{target.username} left the group" if is_self else f"{target.username} was removed from the group"
        conversation_id, actor_id = conversation.id, actor.id
        await self.post_system_message(conversation_id, actor_id, text)
        logger.info(f"User {target_id} removed from conversation {conversation_id} by {actor_id}")
        return target

    async def post_system_message(self, conversation_id: str, sender_id: str, content: str) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            kind="system",
        )
        self.session.add(message)
        await self.session.commit()
        message_id, created_at = message.id, message.created_at
        await self.record_message(conversation_id, message_id, created_at)
        return message

    async def record_message(self, conversation_id: str, message_id: str, created_at) -> bool:
        """
        Move the last-message pointer to message_id.

        The write only moves the pointer forward in time, so it is safe to
        repeat; transient failures are retried. The message row is already
        committed, so a final failure is logged and the pointer stays stale.
        """
        created_at = ensure_utc(created_at)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(settings.pointer_update_attempts),
                wait=wait_random_exponential(multiplier=0.05, max=1),
                reraise=True,
            ):
                with attempt:
                    await self._move_pointer(conversation_id, message_id, created_at)
        except Exception as e:
            logger.error(f"Failed to update last message of conversation {conversation_id}: {e}")
            return False
        return True

    async def _move_pointer(self, conversation_id: str, message_id: str, created_at) -> None:
        try:
            await self.session.execute(
                update(Conversation)
                .where(
                    Conversation.id == conversation_id,
                    Conversation.last_activity <= created_at,
                )
                .values(last_message_id=message_id, last_activity=created_at)
                .execution_options(synchronize_session=False)
            )
            # A new message brings a hidden direct conversation back for everyone
            await self.session.execute(
                update(ConversationParticipant)
                .where(
                    ConversationParticipant.conversation_id == conversation_id,
                    ConversationParticipant.removed_at.is_not(None),
                )
                .values(removed_at=None)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def list_all(
        self, page: int = 1, limit: int = 20, conversation_type: Optional[str] = None
    ) -> tuple[List[Conversation], int]:
        filters = []
        if conversation_type:
            filters.append(Conversation.type == conversation_type)
        total = await self.session.scalar(select(func.count(Conversation.id)).where(*filters))
        stmt = (
            select(Conversation)
            .where(*filters)
            .order_by(Conversation.last_activity.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def hard_delete(self, conversation_ids: Sequence[str]) -> int:
        """Remove conversations with their messages and receipts; admin only"""
        ids = list(conversation_ids)
        if not ids:
            return 0
        no_sync = {"synchronize_session": False}
        message_ids = select(Message.id).where(Message.conversation_id.in_(ids))
        await self.session.execute(
            delete(MessageReceipt).where(MessageReceipt.message_id.in_(message_ids)),
            execution_options=no_sync,
        )
        # Break reply chains before deleting rows that reference each other
        await self.session.execute(
            update(Message).where(Message.conversation_id.in_(ids)).values(reply_to_id=None),
            execution_options=no_sync,
        )
        await self.session.execute(
            delete(Message).where(Message.conversation_id.in_(ids)),
            execution_options=no_sync,
        )
        await self.session.execute(
            delete(ConversationParticipant).where(ConversationParticipant.conversation_id.in_(ids)),
            execution_options=no_sync,
        )
        result = await self.session.execute(
            delete(Conversation).where(Conversation.id.in_(ids)),
            execution_options=no_sync,
        )
        await self.session.commit()
        logger.info(f"Hard-deleted {result.rowcount} conversation(s)")
        return result.rowcount or 0

    async def ids_of_type(self, conversation_type: str) -> List[str]:
        result = await self.session.execute(
            select(Conversation.id).where(Conversation.type == conversation_type)
        )
        return list(result.scalars().all())

    async def count_all(self, conversation_type: Optional[str] = None) -> int:
        stmt = select(func.count(Conversation.id))
        if conversation_type:
            stmt = stmt.where(Conversation.type == conversation_type)
        return int(await self.session.scalar(stmt) or 0)

    async def count_for_user(self, user_id: str) -> int:
        stmt = select(func.count(ConversationParticipant.id)).where(
            ConversationParticipant.user_id == user_id
        )
        return int(await self.session.scalar(stmt) or 0)
