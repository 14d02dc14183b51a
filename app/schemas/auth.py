"""
Auth Schemas
"""

from typing import Union

from pydantic import EmailStr, Field, field_validator

from app.schemas.account import AdminResponse, UserResponse
from app.schemas.base import CamelModel

USERNAME_PATTERN = r"^[A-Za-z0-9_-]+$"


class UserRegister(CamelModel):
    username: str = Field(min_length=2, max_length=30, pattern=USERNAME_PATTERN)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(CamelModel):
    """Email or username plus password; works for users and admins"""
    identifier: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user_type: str
    expires_in: int
    user: Union[AdminResponse, UserResponse]


class RefreshResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

