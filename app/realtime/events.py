"""
Socket event names and client payloads

Envelope on the wire: {"event": "<name>", "data": {...}}
"""

from typing import List, Literal, Optional

from pydantic import Field, field_validator

from app.core.config import settings
from app.schemas.base import CamelModel

# Client -> server
JOIN_CONVERSATION = "join_conversation"
LEAVE_CONVERSATION = "leave_conversation"
SEND_MESSAGE = "send_message"
TYPING_START = "typing_start"
TYPING_STOP = "typing_stop"
MARK_MESSAGES_READ = "mark_messages_read"
UPDATE_STATUS = "update_status"

# Server -> client
CONNECTED = "connected"
NEW_MESSAGE = "new_message"
USER_ONLINE = "user_online"
USER_OFFLINE = "user_offline"
USER_TYPING = "user_typing"
USER_STOPPED_TYPING = "user_stopped_typing"
MESSAGES_READ = "messages_read"
USER_STATUS_CHANGED = "user_status_changed"
USER_JOINED_CONVERSATION = "user_joined_conversation"
USER_LEFT_CONVERSATION = "user_left_conversation"
ADDED_TO_CONVERSATION = "added_to_conversation"
REMOVED_FROM_CONVERSATION = "removed_from_conversation"
ERROR = "error"


class ConversationRef(CamelModel):
    conversation_id: str = Field(min_length=1)


class JoinConversation(ConversationRef):
    pass


class LeaveConversation(ConversationRef):
    pass


class Typing(ConversationRef):
    pass


class SendMessage(ConversationRef):
    content: str = Field(min_length=1, max_length=settings.message_max_length)
    kind: Literal["text", "image", "file"] = Field("text", alias="type")
    reply_to: Optional[str] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message content is required")
        return v


class MarkMessagesRead(ConversationRef):
    message_ids: List[str] = Field(min_length=1)


class UpdateStatus(CamelModel):
    status: str
