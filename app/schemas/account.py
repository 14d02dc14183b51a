"""
Account Schemas
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field

from app.schemas.base import CamelModel


class UserSummary(CamelModel):
    id: str
    username: str
    avatar: Optional[str] = None
    is_online: bool = False
    last_seen: Optional[datetime] = None


class UserResponse(UserSummary):
    email: EmailStr
    is_active: bool
    user_type: Literal["user"] = "user"
    created_at: datetime


class AdminResponse(CamelModel):
    id: str
    username: str
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str = ""
    role: str
    permissions: List[str]
    is_active: bool
    last_login: Optional[datetime] = None
    user_type: Literal["admin"] = "admin"
    created_at: datetime

    @classmethod
    def from_admin(cls, admin) -> "AdminResponse":
        return cls(
            id=admin.id,
            username=admin.username,
            email=admin.email,
            first_name=admin.first_name,
            last_name=admin.last_name,
            full_name=admin.full_name,
            role=admin.role,
            permissions=sorted(admin.permissions),
            is_active=admin.is_active,
            last_login=admin.last_login,
            created_at=admin.created_at,
        )


class ProfileUpdate(CamelModel):
    username: Optional[str] = Field(None, min_length=2, max_length=30, pattern=r"^[A-Za-z0-9_-]+$")
    email: Optional[EmailStr] = None
    avatar: Optional[str] = Field(None, max_length=500)


class PasswordChange(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=128)


class AdminCreate(CamelModel):
    username: str = Field(min_length=2, max_length=30, pattern=r"^[A-Za-z0-9_-]+$")
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    role: Literal["super_admin", "admin", "moderator"] = "admin"
