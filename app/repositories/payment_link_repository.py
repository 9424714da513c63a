"""
支付链接数据库操作层
"""

from typing import List, Optional
from decimal import Decimal

from sqlalchemy import select, update, delete, and_, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import unit_of_work
from app.models.payment_link import PaymentLink, PaymentLinkStatus
from app.models.database.payment_link_db import PaymentLinkDB


class PaymentLinkRepository:
    """支付链接数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def atomic(self):
        """开启原子操作单元"""
        return unit_of_work(self.db)

    async def commit(self) -> None:
        """提交当前事务"""
        await self.db.commit()

    async def get_by_id(self, link_id: int) -> Optional[PaymentLinkDB]:
        result = await self.db.execute(
            select(PaymentLinkDB).where(PaymentLinkDB.id == link_id)
        )
        return result.scalar_one_or_none()

    async def get_pending_for_transaction(self, transaction_id: int) -> Optional[PaymentLinkDB]:
        """获取交易下待支付的链接"""
        result = await self.db.execute(
            select(PaymentLinkDB)
            .where(
                and_(
                    PaymentLinkDB.transaction_id == transaction_id,
                    PaymentLinkDB.status == PaymentLinkStatus.PENDING.value
                )
            )
            .order_by(desc(PaymentLinkDB.created_at))
        )
        return result.scalars().first()

    async def get_pending_for_student(self, student_id: int) -> Optional[PaymentLinkDB]:
        """获取学员待支付的链接"""
        result = await self.db.execute(
            select(PaymentLinkDB)
            .where(
                and_(
                    PaymentLinkDB.student_id == student_id,
                    PaymentLinkDB.status == PaymentLinkStatus.PENDING.value
                )
            )
            .order_by(desc(PaymentLinkDB.created_at))
        )
        return result.scalars().first()

    async def get_latest_for_student(self, student_id: int) -> Optional[PaymentLinkDB]:
        """获取学员最新的支付链接"""
        result = await self.db.execute(
            select(PaymentLinkDB)
            .where(PaymentLinkDB.student_id == student_id)
            .order_by(desc(PaymentLinkDB.created_at), desc(PaymentLinkDB.id))
            .limit(1)
        )
        return result.scalars().first()

    async def list_for_student(self, student_id: int) -> List[PaymentLinkDB]:
        """学员的全部支付链接"""
        result = await self.db.execute(
            select(PaymentLinkDB)
            .where(PaymentLinkDB.student_id == student_id)
            .order_by(desc(PaymentLinkDB.created_at))
        )
        return result.scalars().all()

    async def list_pending(self) -> List[PaymentLinkDB]:
        """全部待支付链接（对账用）"""
        result = await self.db.execute(
            select(PaymentLinkDB)
            .where(PaymentLinkDB.status == PaymentLinkStatus.PENDING.value)
            .order_by(PaymentLinkDB.id)
        )
        return result.scalars().all()

    async def create_payment_link(
        self,
        order_number: str,
        value: Decimal,
        payment_link: str,
        student_id: int,
        transaction_id: Optional[int] = None,
        provider_id: Optional[int] = None,
        code: Optional[str] = None,
        description: Optional[str] = None,
        max_split_transaction: Optional[int] = None,
        available_payment_methods: Optional[str] = None,
        status: PaymentLinkStatus = PaymentLinkStatus.PENDING
    ) -> PaymentLinkDB:
        """保存网关返回的支付链接"""
        db_link = PaymentLinkDB(
            provider_id=provider_id,
            order_number=order_number,
            code=code,
            value=value,
            description=description,
            max_split_transaction=max_split_transaction,
            available_payment_methods=available_payment_methods,
            payment_link=payment_link,
            status=int(status),
            student_id=student_id,
            transaction_id=transaction_id
        )
        self.db.add(db_link)
        await self.db.flush()
        return db_link

    async def update_status(self, link_id: int, status: PaymentLinkStatus) -> bool:
        """更新链接状态"""
        result = await self.db.execute(
            update(PaymentLinkDB)
            .where(PaymentLinkDB.id == link_id)
            .values(status=int(status), updated_at=func.now())
        )
        return result.rowcount > 0

    async def delete_for_transaction(self, transaction_id: int) -> int:
        """删除交易关联的全部支付链接"""
        result = await self.db.execute(
            delete(PaymentLinkDB).where(PaymentLinkDB.transaction_id == transaction_id)
        )
        return result.rowcount

    def to_model(self, db_link: PaymentLinkDB) -> PaymentLink:
        """转换为Pydantic模型"""
        return PaymentLink(
            id=db_link.id,
            provider_id=db_link.provider_id,
            order_number=db_link.order_number,
            code=db_link.code,
            value=db_link.value,
            description=db_link.description,
            max_split_transaction=db_link.max_split_transaction,
            available_payment_methods=db_link.available_payment_methods,
            payment_link=db_link.payment_link,
            status=db_link.status if db_link.status is not None else PaymentLinkStatus.PENDING,
            student_id=db_link.student_id,
            transaction_id=db_link.transaction_id,
            created_at=db_link.created_at,
            updated_at=db_link.updated_at
        )
