"""
Account Models

Users and admins share one credentialed principal table (single-table
inheritance on ``kind``). Hashing and the lockout state machine live on the
base class; the subclasses only differ by presence fields and permissions.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import Boolean, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.core.time import ensure_utc, utcnow
from app.models.base import Base, TimestampMixin, new_id

ACCOUNT_KIND_USER = "user"
ACCOUNT_KIND_ADMIN = "admin"

ADMIN_ROLES = ("super_admin", "admin", "moderator")

PERMISSION_USER_MANAGEMENT = "user_management"
PERMISSION_CONVERSATION_MANAGEMENT = "conversation_management"
PERMISSION_MESSAGE_MANAGEMENT = "message_management"
PERMISSION_SYSTEM_SETTINGS = "system_settings"
PERMISSION_ANALYTICS_VIEW = "analytics_view"
PERMISSION_ADMIN_MANAGEMENT = "admin_management"

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "super_admin": frozenset({
        PERMISSION_USER_MANAGEMENT,
        PERMISSION_CONVERSATION_MANAGEMENT,
        PERMISSION_MESSAGE_MANAGEMENT,
        PERMISSION_SYSTEM_SETTINGS,
        PERMISSION_ANALYTICS_VIEW,
        PERMISSION_ADMIN_MANAGEMENT,
    }),
    "admin": frozenset({
        PERMISSION_USER_MANAGEMENT,
        PERMISSION_CONVERSATION_MANAGEMENT,
        PERMISSION_MESSAGE_MANAGEMENT,
        PERMISSION_ANALYTICS_VIEW,
    }),
    "moderator": frozenset({
        PERMISSION_USER_MANAGEMENT,
        PERMISSION_MESSAGE_MANAGEMENT,
    }),
}


class Account(Base, TimestampMixin):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    kind: Mapped[str] = mapped_column(String(10), index=True, nullable=False)
    username: Mapped[str] = mapped_column(String(30), unique=True, index=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Lockout
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lock_until: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    # Base queries also load subclass columns; async sessions cannot lazy-load them
    __mapper_args__ = {
        "polymorphic_on": "kind",
        "with_polymorphic": "*",
    }

    @validates("email")
    def _normalise_email(self, key: str, value: str) -> str:
        return value.strip().lower()

    @validates("username")
    def _normalise_username(self, key: str, value: str) -> str:
        return value.strip()

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        lock_until = ensure_utc(self.lock_until)
        return lock_until is not None and lock_until > (now or utcnow())

    def register_failed_login(
        self, max_attempts: int, lock_duration: timedelta, now: Optional[datetime] = None
    ) -> None:
        """Count a failed password check, locking the account at the threshold"""
        now = now or utcnow()
        lock_until = ensure_utc(self.lock_until)
        if lock_until is not None and lock_until <= now:
            # Previous lock expired; start counting again
            self.lock_until = None
            self.login_attempts = 1
            return

        self.login_attempts = (self.login_attempts or 0) + 1
        if self.login_attempts >= max_attempts and not self.is_locked(now):
            self.lock_until = now + lock_duration

    def register_successful_login(self, now: Optional[datetime] = None) -> None:
        self.login_attempts = 0
        self.lock_until = None
        self.last_login = now or utcnow()

    def deactivate(self) -> None:
        self.is_active = False

    def reactivate(self) -> None:
        self.is_active = True
        self.login_attempts = 0
        self.lock_until = None

    @property
    def permissions(self) -> frozenset[str]:
        return frozenset()

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


class User(Account):
    """Regular chat participant"""

    is_online: Mapped[Optional[bool]] = mapped_column(Boolean, default=False, nullable=True)
    last_seen: Mapped[Optional[datetime]] = mapped_column(default=utcnow, nullable=True)
    connection_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __mapper_args__ = {
        "polymorphic_identity": ACCOUNT_KIND_USER,
    }

    def set_online(self, connection_id: Optional[str] = None) -> None:
        self.is_online = True
        self.connection_id = connection_id

    def set_offline(self, now: Optional[datetime] = None) -> None:
        # A connection id is only meaningful while online
        self.is_online = False
        self.connection_id = None
        self.last_seen = now or utcnow()

    def deactivate(self) -> None:
        super().deactivate()
        self.is_online = False
        self.connection_id = None


class Admin(Account):
    """Administrative principal with a role-derived permission set"""

    role: Mapped[Optional[str]] = mapped_column(
        Enum(*ADMIN_ROLES, name="admin_role", native_enum=False, create_constraint=True),
        default="admin",
        nullable=True,
    )
    first_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_by_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )

    __mapper_args__ = {
        "polymorphic_identity": ACCOUNT_KIND_ADMIN,
    }

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def permissions(self) -> frozenset[str]:
        return ROLE_PERMISSIONS.get(self.role or "", frozenset())
