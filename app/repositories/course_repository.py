"""
课程数据库操作层
"""

from typing import List, Dict, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.transaction import TransactionCourseItem
from app.models.database.course_db import CourseDB, CourseModalityDB


class CourseRepository:
    """课程数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_names_by_ids(self, course_ids: List[int]) -> Dict[int, str]:
        """批量获取课程名称"""
        if not course_ids:
            return {}
        result = await self.db.execute(
            select(CourseDB.id, CourseDB.name).where(CourseDB.id.in_(course_ids))
        )
        return {row.id: row.name for row in result.fetchall()}

    async def get_modality_names_by_ids(self, modality_ids: List[int]) -> Dict[int, str]:
        """批量获取授课形式名称"""
        if not modality_ids:
            return {}
        result = await self.db.execute(
            select(CourseModalityDB.id, CourseModalityDB.name).where(CourseModalityDB.id.in_(modality_ids))
        )
        return {row.id: row.name for row in result.fetchall()}

    async def describe_courses(self, items: List[TransactionCourseItem]) -> List[str]:
        """生成"授课形式 课程名"形式的描述列表"""
        pairs: List[Tuple[int, int]] = [(i.course_id, i.course_modality_id) for i in items]
        course_names = await self.get_names_by_ids(sorted({c for c, _ in pairs}))
        modality_names = await self.get_modality_names_by_ids(sorted({m for _, m in pairs}))

        descriptions = []
        for course_id, modality_id in pairs:
            parts = [modality_names.get(modality_id), course_names.get(course_id)]
            description = " ".join(p for p in parts if p)
            if description:
                descriptions.append(description)
        return descriptions
