from app.models.account import Account, Admin, User
from app.models.base import Base
from app.models.conversation import Conversation, ConversationParticipant
from app.models.message import Message, MessageReceipt

__all__ = [
    "Base",
    "Account",
    "User",
    "Admin",
    "Conversation",
    "ConversationParticipant",
    "Message",
    "MessageReceipt",
]
