"""
Message Schemas
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from app.core.config import settings
from app.schemas.account import UserSummary
from app.schemas.base import CamelModel


class MessageCreate(CamelModel):
    conversation_id: str
    content: str = Field(min_length=1, max_length=settings.message_max_length)
    kind: Literal["text", "image", "file"] = Field("text", alias="type")
    reply_to: Optional[str] = None
    file_url: Optional[str] = Field(None, max_length=500)
    file_name: Optional[str] = Field(None, max_length=255)
    file_size: Optional[int] = Field(None, ge=0)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message content is required")
        return v


class MessageUpdate(CamelModel):
    content: str = Field(min_length=1, max_length=settings.message_max_length)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message content is required")
        return v


class FileInfo(CamelModel):
    url: str
    name: Optional[str] = None
    size: Optional[int] = None


class ReceiptResponse(CamelModel):
    user_id: str
    read_at: datetime


class ReplyPreview(CamelModel):
    id: str
    content: str
    sender_id: str


class MessageResponse(CamelModel):
    id: str
    conversation_id: str
    sender: UserSummary
    content: str
    kind: str = Field(alias="type")
    file: Optional[FileInfo] = None
    reply_to: Optional[ReplyPreview] = None
    read_by: List[ReceiptResponse] = []
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_message(cls, message) -> "MessageResponse":
        """Read view of a message; deleted messages never expose file metadata"""
        file = None
        if not message.is_deleted and message.file_url:
            file = FileInfo(url=message.file_url, name=message.file_name, size=message.file_size)

        reply_to = None
        if message.reply_to is not None:
            reply_to = ReplyPreview(
                id=message.reply_to.id,
                content=message.reply_to.content,
                sender_id=message.reply_to.sender_id,
            )

        return cls(
            id=message.id,
            conversation_id=message.conversation_id,
            sender=UserSummary.model_validate(message.sender),
            content=message.content,
            kind=message.kind,
            file=file,
            reply_to=reply_to,
            read_by=[ReceiptResponse.model_validate(r) for r in message.receipts],
            is_edited=message.is_edited,
            edited_at=message.edited_at,
            is_deleted=message.is_deleted,
            deleted_at=message.deleted_at,
            created_at=message.created_at,
        )


class MessagePage(CamelModel):
    messages: List[MessageResponse]
    page: int
    limit: int
    has_more: bool
