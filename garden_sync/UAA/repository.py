# garden_sync/UAA/repository.py
import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from .models import User


class UserRepository:
    """Users only. `add` flushes so the caller can provision the game state in the same commit."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _one(self, *where) -> Optional[User]:
        res = await self.session.execute(select(User).where(*where))
        return res.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self._one(User.email == email)

    async def get_by_username(self, username: str) -> Optional[User]:
        return await self._one(User.username == username)

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        return await self._one(User.id == user_id)

    async def add(self, user: User) -> User:
        self.session.add(user)
        await self.session.flush()
        return user

    async def update_last_login(self, user: User) -> User:
        user.last_login = datetime.utcnow()
        self.session.add(user)
        await self.session.commit()
        return user
