"""
系统用户数据库操作层
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database.user_db import UserDB


class UserRepository:
    """系统用户数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: int) -> Optional[UserDB]:
        result = await self.db.execute(select(UserDB).where(UserDB.id == user_id))
        return result.scalar_one_or_none()
