"""
Admin Schemas
"""

import math
from typing import List

from app.schemas.account import UserResponse, UserSummary
from app.schemas.base import CamelModel
from app.schemas.conversation import ConversationResponse


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if limit else 0)


class UserPage(CamelModel):
    users: List[UserResponse]
    pagination: Pagination


class UserActivity(CamelModel):
    conversation_count: int
    message_count: int


class UserDetail(CamelModel):
    user: UserResponse
    stats: UserActivity


class ConversationPage(CamelModel):
    conversations: List[ConversationResponse]
    pagination: Pagination


class DashboardStats(CamelModel):
    total_users: int
    active_users: int
    online_users: int
    total_conversations: int
    total_messages: int
    new_users_this_week: int


class DashboardResponse(CamelModel):
    stats: DashboardStats
    recent_users: List[UserSummary]


class DeleteResult(CamelModel):
    success: bool = True
    message: str
    deleted_count: int
