# servicebell/crud/crud_user.py
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell.core.security import get_password_hash, verify_password
from servicebell.db.models.user import User, UserRole


class CRUDUser:
    async def get(self, db: AsyncSession, id: int) -> Optional[User]:
        return await db.get(User, id)

    async def get_by_username(self, db: AsyncSession, *, username: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def get_staff(self, db: AsyncSession, *, restaurant_id: int) -> List[User]:
        result = await db.execute(
            select(User)
            .where(User.restaurant_id == restaurant_id, User.role == UserRole.STAFF)
            .order_by(User.username)
        )
        return list(result.scalars().all())

    async def create(
        self,
        db: AsyncSession,
        *,
        username: str,
        password: str,
        email: Optional[str] = None,
        role: UserRole = UserRole.OWNER,
        restaurant_id: Optional[int] = None,
    ) -> User:
        db_obj = User(
            username=username,
            hashed_password=get_password_hash(password),
            email=email,
            role=role,
            restaurant_id=restaurant_id,
        )
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: User) -> User:
        await db.delete(db_obj)
        await db.flush()
        return db_obj

    async def authenticate(self, db: AsyncSession, *, username: str, password: str) -> Optional[User]:
        user = await self.get_by_username(db, username=username)
        if not user:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user


user = CRUDUser()
