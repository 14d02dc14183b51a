"""
Auth Service

Registration, unified login for users and admins, and token resolution.
"""

from datetime import timedelta
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.core.logging import get_logger
from app.core.security import (
    create_access_token,
    get_password_hash,
    token_lifetime,
    verify_password,
    verify_token,
)
from app.models.account import Account, Admin, User
from app.schemas.account import AdminCreate
from app.schemas.auth import UserRegister

logger = get_logger(__name__)

ADMIN_PASSWORD_MIN_LENGTH = 8


class AuthService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_identifier(self, identifier: str) -> Optional[Account]:
        """Find any account by email (case-insensitive) or exact username"""
        identifier = identifier.strip()
        result = await self.session.execute(
            select(Account).where(
                or_(Account.email == identifier.lower(), Account.username == identifier)
            )
        )
        return result.scalars().first()

    async def ensure_available(
        self, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None
    ) -> None:
        """Raise ConflictError when username or email already belongs to another account"""
        conditions = []
        if username:
            conditions.append(Account.username == username.strip())
        if email:
            conditions.append(Account.email == email.strip().lower())
        if not conditions:
            return

        stmt = select(Account).where(or_(*conditions))
        if exclude_id:
            stmt = stmt.where(Account.id != exclude_id)
        existing = (await self.session.execute(stmt)).scalars().first()
        if existing is None:
            return
        if username and existing.username == username.strip():
            raise ConflictError("Username already exists")
        raise ConflictError("Email already exists")

    async def register_user(self, data: UserRegister) -> User:
        """Create a new user"""
        await self.ensure_available(data.username, data.email)

        user = User(
            username=data.username,
            email=data.email,
            hashed_password=get_password_hash(data.password),
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        logger.info(f"Registered user {user.id} ({user.username})")
        return user

    async def authenticate(self, identifier: str, password: str) -> Account:
        """
        Verify credentials for either kind of principal.

        Failed attempts count toward the lockout threshold for users and
        admins alike.
        """
        account = await self.get_by_identifier(identifier)
        if account is None:
            raise AuthenticationError("Invalid credentials")

        if not account.is_active:
            raise AuthorizationError(
                "Account has been deactivated. Please contact administrator."
            )

        if account.is_locked():
            raise AccountLockedError(
                "Account is temporarily locked due to too many failed login attempts."
            )

        if not verify_password(password, account.hashed_password):
            account.register_failed_login(
                settings.max_login_attempts,
                timedelta(minutes=settings.lock_duration_minutes),
            )
            await self.session.commit()
            logger.warning(
                f"Failed login for {account.kind} {account.id} "
                f"(attempts={account.login_attempts})"
            )
            raise AuthenticationError("Invalid credentials")

        account.register_successful_login()
        await self.session.commit()
        logger.info(f"{account.kind.capitalize()} {account.id} logged in")
        return account

    def issue_token(self, account: Account) -> tuple[str, int]:
        """Return (token, lifetime in seconds) for the account's kind"""
        lifetime = token_lifetime(account.kind)
        token = create_access_token(account.id, account.kind)
        return token, int(lifetime.total_seconds())

    async def resolve_principal(self, token: str) -> Account:
        """Map a bearer token to an active, unlocked account"""
        verified = verify_token(token)
        if verified is None:
            raise AuthenticationError("Invalid or expired token")
        account_id, kind = verified

        account = await self.session.get(Account, account_id)
        if account is None or account.kind != kind:
            raise AuthenticationError("Invalid token")
        if not account.is_active:
            raise AuthenticationError("Account has been deactivated")
        if isinstance(account, Admin) and account.is_locked():
            raise AccountLockedError("Admin account is temporarily locked")
        return account

    async def change_password(self, account: Account, current: str, new: str) -> None:
        if not verify_password(current, account.hashed_password):
            raise AuthenticationError("Current password is incorrect")
        if isinstance(account, Admin) and len(new) < ADMIN_PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"New password must be at least {ADMIN_PASSWORD_MIN_LENGTH} characters long"
            )
        account.hashed_password = get_password_hash(new)
        await self.session.commit()
        logger.info(f"Password changed for {account.kind} {account.id}")

    async def create_admin(self, data: AdminCreate, created_by: Optional[Admin] = None) -> Admin:
        await self.ensure_available(data.username, data.email)
        admin = Admin(
            username=data.username,
            email=data.email,
            hashed_password=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            created_by_id=created_by.id if created_by is not None else None,
        )
        self.session.add(admin)
        await self.session.commit()
        await self.session.refresh(admin)
        logger.info(f"Created {admin.role} {admin.id} ({admin.username})")
        return admin

    async def list_admins(self) -> List[Admin]:
        result = await self.session.execute(select(Admin).order_by(Admin.created_at.desc()))
        return list(result.scalars().all())

    async def require_admin(self, admin_id: str) -> Admin:
        admin = await self.session.get(Admin, admin_id)
        if admin is None:
            raise NotFoundError("Admin not found")
        return admin

    async def set_admin_active(self, target: Admin, active: bool, actor: Admin) -> Admin:
        if not active and target.id == actor.id:
            raise ValidationError("You cannot deactivate your own account")
        if active:
            target.reactivate()
        else:
            target.deactivate()
        await self.session.commit()
        logger.info(f"Admin {actor.id} {'reactivated' if active else 'deactivated'} admin {target.id}")
        return target
