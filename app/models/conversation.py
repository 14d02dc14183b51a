"""
Conversation Models

Direct (exactly two participants) and group (two or more) threads.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.time import utcnow
from app.models.base import Base, TimestampMixin, new_id

if TYPE_CHECKING:
    from app.models.account import User
    from app.models.message import Message

CONVERSATION_DIRECT = "direct"
CONVERSATION_GROUP = "group"
CONVERSATION_TYPES = (CONVERSATION_DIRECT, CONVERSATION_GROUP)


def direct_key_for(user_a: str, user_b: str) -> str:
    """Order-independent key identifying the direct conversation of a pair"""
    return ":".join(sorted((user_a, user_b)))


class Conversation(Base, TimestampMixin):
    __tablename__ = "conversations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    type: Mapped[str] = mapped_column(
        Enum(*CONVERSATION_TYPES, name="conversation_type", native_enum=False, create_constraint=True),
        default=CONVERSATION_DIRECT,
        nullable=False,
    )
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # Only set for direct conversations; NULLs do not collide
    direct_key: Mapped[Optional[str]] = mapped_column(String(80), unique=True, nullable=True)
    # No FK constraint: messages already reference conversations
    last_message_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_activity: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    created_by_id: Mapped[str] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    participants: Mapped[List["ConversationParticipant"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationParticipant.joined_at",
        lazy="selectin",
    )
    last_message: Mapped[Optional["Message"]] = relationship(
        "Message",
        primaryjoin="foreign(Conversation.last_message_id) == Message.id",
        viewonly=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_conversations_last_activity", "last_activity"),
        Index("idx_conversations_type", "type"),
    )

    @property
    def participant_ids(self) -> list[str]:
        return [p.user_id for p in self.participants]

    def has_participant(self, user_id: str) -> bool:
        return any(p.user_id == user_id for p in self.participants)

    def participant(self, user_id: str) -> Optional["ConversationParticipant"]:
        return next((p for p in self.participants if p.user_id == user_id), None)


class ConversationParticipant(Base):
    """Membership row; ``removed_at`` hides a direct conversation for one user"""

    __tablename__ = "conversation_participants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    removed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    conversation: Mapped["Conversation"] = relationship(back_populates="participants")
    user: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_participant_conversation_user"),
        Index("idx_participants_user", "user_id"),
    )
