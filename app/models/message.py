"""
Message Models

Conversation messages and their per-reader receipts.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.time import utcnow
from app.models.base import Base, TimestampMixin, new_id

if TYPE_CHECKING:
    from app.models.account import User

MESSAGE_KINDS = ("text", "image", "file", "system")
DELETED_MESSAGE_PLACEHOLDER = "This message was deleted"


class Message(Base, TimestampMixin):
    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    conversation_id: Mapped[str] = mapped_column(
        ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[str] = mapped_column(ForeignKey("accounts.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[str] = mapped_column(
        Enum(*MESSAGE_KINDS, name="message_kind", native_enum=False, create_constraint=True),
        default="text",
        nullable=False,
    )
    file_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reply_to_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    edited_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    sender: Mapped["User"] = relationship("User", lazy="selectin")
    reply_to: Mapped[Optional["Message"]] = relationship(
        "Message", remote_side=[id], lazy="selectin", join_depth=1
    )
    receipts: Mapped[List["MessageReceipt"]] = relationship(
        back_populates="message",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_messages_conversation_created", "conversation_id", "created_at"),
        Index("idx_messages_sender", "sender_id"),
    )

    def is_read_by(self, user_id: str) -> bool:
        return any(r.user_id == user_id for r in self.receipts)

    def mark_read(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """Append a receipt for user_id; returns False when one already exists"""
        if self.is_read_by(user_id):
            return False
        self.receipts.append(MessageReceipt(user_id=user_id, read_at=now or utcnow()))
        return True

    def edit(self, content: str, now: Optional[datetime] = None) -> None:
        self.content = content
        self.is_edited = True
        self.edited_at = now or utcnow()

    def soft_delete(self, now: Optional[datetime] = None) -> None:
        self.is_deleted = True
        self.deleted_at = now or utcnow()
        self.content = DELETED_MESSAGE_PLACEHOLDER


class MessageReceipt(Base):
    """A reader's acknowledgement of one message; append-only"""

    __tablename__ = "message_reads"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    read_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    message: Mapped["Message"] = relationship(back_populates="receipts")

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_reads_message_user"),
        Index("idx_message_reads_user", "user_id"),
    )
