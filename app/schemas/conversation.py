"""
Conversation Schemas
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from app.schemas.account import UserSummary
from app.schemas.base import CamelModel
from app.schemas.message import MessageResponse


class ConversationCreate(CamelModel):
    participants: List[str] = Field(min_length=1)
    type: Literal["direct", "group"] = "direct"
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "description")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v


class ConversationUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=500)


class ConversationResponse(CamelModel):
    id: str
    type: str
    name: Optional[str] = None
    description: Optional[str] = None
    avatar: Optional[str] = None
    participants: List[UserSummary]
    created_by_id: str
    last_message: Optional[MessageResponse] = None
    last_activity: datetime
    is_active: bool
    unread_count: int = 0
    created_at: datetime

    @classmethod
    def from_conversation(cls, conversation, unread_count: int = 0) -> "ConversationResponse":
        last_message = None
        if conversation.last_message is not None:
            last_message = MessageResponse.from_message(conversation.last_message)
        return cls(
            id=conversation.id,
            type=conversation.type,
            name=conversation.name,
            description=conversation.description,
            avatar=conversation.avatar,
            participants=[UserSummary.model_validate(p.user) for p in conversation.participants],
            created_by_id=conversation.created_by_id,
            last_message=last_message,
            last_activity=conversation.last_activity,
            is_active=conversation.is_active,
            unread_count=unread_count,
            created_at=conversation.created_at,
        )


class AddMembersRequest(CamelModel):
    user_ids: List[str] = Field(min_length=1)


class AddMembersResponse(CamelModel):
    added_users: List[UserSummary]
    already_members: List[UserSummary]
    total_members: int


class MembersResponse(CamelModel):
    conversation_id: str
    name: Optional[str] = None
    created_by_id: str
    participant_count: int
    members: List[UserSummary]
