"""
User Service

Profile management, search and persisted presence flags.
"""

from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.core.logging import get_logger
from app.core.time import utcnow
from app.models.account import ACCOUNT_KIND_USER, User
from app.schemas.account import ProfileUpdate
from app.services.auth_service import AuthService

logger = get_logger(__name__)


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: str, active_only: bool = True) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def require_user(self, user_id: str, active_only: bool = True) -> User:
        user = await self.get_user(user_id, active_only=active_only)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_users(self, user_ids: Sequence[str], active_only: bool = True) -> List[User]:
        if not user_ids:
            return []
        stmt = select(User).where(User.id.in_(list(user_ids)))
        if active_only:
            stmt = stmt.where(User.is_active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def search(self, query: str, exclude_id: Optional[str] = None, limit: int = 20) -> List[User]:
        """Case-insensitive substring match on username or email"""
        pattern = f"%{query.strip().lower()}%"
        stmt = (
            select(User)
            .where(
                User.is_active.is_(True),
                or_(func.lower(User.username).like(pattern), User.email.like(pattern)),
            )
            .order_by(User.username)
            .limit(limit)
        )
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_excluding(self, exclude_ids: Sequence[str], limit: int = 50) -> List[User]:
        stmt = select(User).where(User.is_active.is_(True)).order_by(User.username).limit(limit)
        if exclude_ids:
            stmt = stmt.where(User.id.not_in(list(exclude_ids)))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> tuple[List[User], int]:
        """Paginated listing used by the admin surface"""
        # Column-only counts do not get the inheritance filter automatically
        filters = [User.kind == ACCOUNT_KIND_USER]
        if search:
            pattern = f"%{search.strip().lower()}%"
            filters.append(or_(func.lower(User.username).like(pattern), User.email.like(pattern)))
        if is_active is not None:
            filters.append(User.is_active.is_(is_active))

        total = await self.session.scalar(select(func.count(User.id)).where(*filters))
        stmt = (
            select(User)
            .where(*filters)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    async def update_profile(self, user: User, data: ProfileUpdate) -> User:
        await AuthService(self.session).ensure_available(data.username, data.email, exclude_id=user.id)
        if data.username is not None:
            user.username = data.username
        if data.email is not None:
            user.email = data.email
        if data.avatar is not None:
            user.avatar = data.avatar
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def set_online(self, user_id: str, connection_id: Optional[str] = None) -> None:
        user = await self.get_user(user_id, active_only=False)
        if user is None:
            return
        user.set_online(connection_id)
        await self.session.commit()

    async def set_offline(self, user_id: str) -> Optional[User]:
        user = await self.get_user(user_id, active_only=False)
        if user is None:
            return None
        user.set_offline()
        await self.session.commit()
        return user

    async def reset_presence(self) -> int:
        """
        Mark every user offline.
        The presence registry starts empty, so persisted online flags from a
        previous process are stale.
        """
        result = await self.session.execute(
            update(User)
            .where(User.is_online.is_(True))
            .values(is_online=False, connection_id=None, last_seen=utcnow())
        )
        await self.session.commit()
        return result.rowcount or 0

    async def deactivate(self, user: User) -> User:
        user.deactivate()
        await self.session.commit()
        return user

    async def reactivate(self, user: User) -> User:
        user.reactivate()
        await self.session.commit()
        return user

    async def count(self, is_active: Optional[bool] = None, created_since: Optional[datetime] = None) -> int:
        filters = [User.kind == ACCOUNT_KIND_USER]
        if is_active is not None:
            filters.append(User.is_active.is_(is_active))
        if created_since is not None:
            filters.append(User.created_at >= created_since)
        return int(await self.session.scalar(select(func.count(User.id)).where(*filters)) or 0)

    async def recent(self, limit: int = 5) -> List[User]:
        result = await self.session.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())
