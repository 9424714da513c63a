"""
交易数据库操作层
"""

from typing import List, Optional, Dict, Any, Tuple
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update, delete, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import unit_of_work
from app.models.transaction import Transaction, TransactionCourseItem, TransactionFilter, PaymentStatus
from app.models.database.transaction_db import TransactionDB, TransactionCourseDB


class TransactionRepository:
    """交易数据库操作层"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def atomic(self):
        """开启原子操作单元"""
        return unit_of_work(self.db)

    async def get_by_id(self, transaction_id: int) -> Optional[TransactionDB]:
        """根据ID获取交易（包含课程明细）"""
        result = await self.db.execute(
            select(TransactionDB)
            .options(selectinload(TransactionDB.courses))
            .where(TransactionDB.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock(self, transaction_id: int) -> None:
        """对交易行加行锁，直到当前事务结束"""
        await self.db.execute(
            select(TransactionDB.id).where(TransactionDB.id == transaction_id).with_for_update()
        )

    async def has_pending_transaction(self, student_id: int, exclude_id: Optional[int] = None) -> bool:
        """学员是否存在待支付交易"""
        conditions = [
            TransactionDB.student_id == student_id,
            TransactionDB.payment_status == PaymentStatus.PENDING.value
        ]
        if exclude_id is not None:
            conditions.append(TransactionDB.id != exclude_id)

        result = await self.db.execute(
            select(func.count(TransactionDB.id)).where(and_(*conditions))
        )
        return (result.scalar() or 0) > 0

    async def get_latest_for_student(self, student_id: int) -> Optional[TransactionDB]:
        """获取学员最新的一笔交易"""
        result = await self.db.execute(
            select(TransactionDB)
            .options(selectinload(TransactionDB.courses))
            .where(TransactionDB.student_id == student_id)
            .order_by(desc(TransactionDB.created_at), desc(TransactionDB.id))
            .limit(1)
        )
        return result.scalars().first()

    async def create_transaction_with_courses(
        self,
        student_id: int,
        created_by_id: int,
        courses: List[TransactionCourseItem],
        total_value: Decimal,
        payment_status: PaymentStatus,
        payment_type: Optional[str] = None,
        installments: Optional[int] = None,
        payment_date: Optional[datetime] = None,
        payment_forecast_date: Optional[datetime] = None,
        coupon_id: Optional[int] = None,
        discount_amount: Optional[Decimal] = None
    ) -> TransactionDB:
        """创建交易及课程明细"""
        db_transaction = TransactionDB(
            student_id=student_id,
            created_by_id=created_by_id,
            total_value=total_value,
            payment_type=payment_type,
            installments=installments,
            payment_status=payment_status.value,
            payment_date=payment_date,
            payment_forecast_date=payment_forecast_date,
            coupon_id=coupon_id,
            discount_amount=discount_amount
        )

        self.db.add(db_transaction)
        await self.db.flush()  # 获取生成的ID

        await self.add_courses(db_transaction.id, courses)
        return db_transaction

    async def add_courses(self, transaction_id: int, courses: List[TransactionCourseItem]) -> None:
        """写入课程明细"""
        for item in courses:
            self.db.add(TransactionCourseDB(
                transaction_id=transaction_id,
                course_id=item.course_id,
                course_modality_id=item.course_modality_id
            ))
        await self.db.flush()

    async def replace_courses(self, transaction_id: int, courses: List[TransactionCourseItem]) -> None:
        """替换交易的全部课程明细"""
        await self.delete_courses(transaction_id)
        await self.add_courses(transaction_id, courses)

    async def update_transaction(self, transaction_id: int, values: Dict[str, Any]) -> bool:
        """更新交易字段"""
        if not values:
            return False

        values = dict(values)
        if isinstance(values.get("payment_status"), PaymentStatus):
            values["payment_status"] = values["payment_status"].value
        values["updated_at"] = func.now()

        result = await self.db.execute(
            update(TransactionDB)
            .where(TransactionDB.id == transaction_id)
            .values(**values)
        )
        return result.rowcount > 0

    async def update_payment_status(
        self,
        transaction_id: int,
        payment_status: PaymentStatus,
        now: Optional[datetime] = None
    ) -> bool:
        """更新支付状态：已支付记录支付时间，已取消清空支付时间，待支付不改动"""
        values: Dict[str, Any] = {"payment_status": payment_status}
        if payment_status == PaymentStatus.PAID:
            values["payment_date"] = now or datetime.now()
        elif payment_status == PaymentStatus.CANCELLED:
            values["payment_date"] = None
        return await self.update_transaction(transaction_id, values)

    async def delete_courses(self, transaction_id: int) -> int:
        """删除交易的课程明细"""
        result = await self.db.execute(
            delete(TransactionCourseDB).where(TransactionCourseDB.transaction_id == transaction_id)
        )
        return result.rowcount

    async def delete_transaction(self, transaction_id: int) -> bool:
        """删除交易主记录"""
        result = await self.db.execute(
            delete(TransactionDB).where(TransactionDB.id == transaction_id)
        )
        return result.rowcount > 0

    def _filter_conditions(self, filters: TransactionFilter) -> list:
        """把查询条件转换为SQL条件"""
        conditions = []
        if filters.created_by_id is not None:
            conditions.append(TransactionDB.created_by_id == filters.created_by_id)
        if filters.student_id is not None:
            conditions.append(TransactionDB.student_id == filters.student_id)
        if filters.payment_status is not None:
            conditions.append(TransactionDB.payment_status == filters.payment_status.value)
        if filters.start_date is not None:
            conditions.append(TransactionDB.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(TransactionDB.created_at <= filters.end_date)
        if filters.course_id is not None:
            conditions.append(TransactionDB.courses.any(TransactionCourseDB.course_id == filters.course_id))
        return conditions

    async def list_transactions(self, filters: TransactionFilter) -> Tuple[List[TransactionDB], int]:
        """分页查询交易列表，返回(当前页, 总数)"""
        conditions = self._filter_conditions(filters)

        count_query = select(func.count(TransactionDB.id))
        query = select(TransactionDB).options(selectinload(TransactionDB.courses))
        if conditions:
            count_query = count_query.where(and_(*conditions))
            query = query.where(and_(*conditions))

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(desc(TransactionDB.created_at)).limit(filters.limit).offset(filters.offset)
        result = await self.db.execute(query)
        return result.scalars().all(), total

    def to_model(self, db_transaction: TransactionDB) -> Transaction:
        """转换为Pydantic模型"""
        courses = []
        if "courses" in db_transaction.__dict__:
            courses = [
                TransactionCourseItem(course_id=c.course_id, course_modality_id=c.course_modality_id)
                for c in db_transaction.courses
            ]

        return Transaction(
            id=db_transaction.id,
            student_id=db_transaction.student_id,
            created_by_id=db_transaction.created_by_id,
            coupon_id=db_transaction.coupon_id,
            total_value=db_transaction.total_value,
            discount_amount=db_transaction.discount_amount,
            payment_type=db_transaction.payment_type,
            installments=db_transaction.installments,
            payment_status=db_transaction.payment_status,
            payment_date=db_transaction.payment_date,
            payment_forecast_date=db_transaction.payment_forecast_date,
            courses=courses,
            created_at=db_transaction.created_at,
            updated_at=db_transaction.updated_at
        )
