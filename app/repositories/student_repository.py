"""
学员数据库操作层
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.student import Student, StudentCreate
from app.models.transaction import PaymentStatus
from app.models.database.student_db import StudentDB
from app.models.database.transaction_db import TransactionDB


class StudentRepository:
    """学员数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, student_id: int, for_update: bool = False) -> Optional[StudentDB]:
        """根据ID获取学员，for_update为True时加行锁"""
        query = select(StudentDB).where(StudentDB.id == student_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_with_pending_by_cpf(self, cpf: str) -> Optional[StudentDB]:
        """查找该CPF下存在待支付交易的学员"""
        result = await self.db.execute(
            select(StudentDB)
            .join(TransactionDB, TransactionDB.student_id == StudentDB.id)
            .where(
                StudentDB.cpf == cpf,
                TransactionDB.payment_status == PaymentStatus.PENDING.value
            )
            .limit(1)
        )
        return result.scalars().first()

    async def create_student(self, data: StudentCreate, user_id: int) -> StudentDB:
        """创建学员"""
        db_student = StudentDB(user_id=user_id, **data.model_dump())
        self.db.add(db_student)
        await self.db.flush()
        return db_student

    def to_model(self, db_student: StudentDB) -> Student:
        """转换为Pydantic模型"""
        return Student(
            id=db_student.id,
            full_name=db_student.full_name,
            cpf=db_student.cpf,
            birth_date=db_student.birth_date,
            ddd=db_student.ddd,
            phone=db_student.phone,
            email=db_student.email,
            cnh_number=db_student.cnh_number,
            cnh_type=db_student.cnh_type,
            renach=db_student.renach,
            user_id=db_student.user_id,
            registration_date=db_student.registration_date
        )
