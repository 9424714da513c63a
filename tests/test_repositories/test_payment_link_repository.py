"""
支付链接Repository数据库操作测试 - 使用真实数据库
"""

import pytest
import pytest_asyncio
from decimal import Decimal

from app.models.payment_link import PaymentLinkStatus
from app.models.transaction import TransactionCourseItem, PaymentStatus
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.repositories.transaction_repository import TransactionRepository


@pytest.mark.asyncio
class TestPaymentLinkRepository:
    """支付链接Repository数据库操作测试类"""

    @pytest_asyncio.fixture
    async def transaction(self, db_session, seed):
        return await TransactionRepository(db_session).create_transaction_with_courses(
            student_id=seed.student.id,
            created_by_id=seed.user.id,
            courses=[TransactionCourseItem(course_id=seed.course.id, course_modality_id=seed.modality.id)],
            total_value=Decimal("200.00"),
            payment_status=PaymentStatus.PENDING
        )

    async def _add_link(self, repo, seed, transaction, order_suffix: str, status=PaymentLinkStatus.PENDING):
        return await repo.create_payment_link(
            order_number=f"{seed.suffix}{order_suffix}",
            value=Decimal("200.00"),
            payment_link=f"https://pay.example.com/{order_suffix}",
            student_id=seed.student.id,
            transaction_id=transaction.id,
            status=status
        )

    async def test_pending_lookup_and_status_update(self, db_session, seed, transaction):
        """测试状态更新后不再作为待支付链接返回"""
        repo = PaymentLinkRepository(db_session)
        link = await self._add_link(repo, seed, transaction, "001")

        pending = await repo.get_pending_for_transaction(transaction.id)
        assert pending.id == link.id

        assert await repo.update_status(link.id, PaymentLinkStatus.PAID) is True
        assert await repo.get_pending_for_transaction(transaction.id) is None
        assert await repo.get_pending_for_student(seed.student.id) is None

    async def test_delete_for_transaction(self, db_session, seed, transaction):
        repo = PaymentLinkRepository(db_session)
        await self._add_link(repo, seed, transaction, "001", status=PaymentLinkStatus.CANCELLED)
        await self._add_link(repo, seed, transaction, "002")

        assert await repo.delete_for_transaction(transaction.id) == 2
        assert await repo.list_for_student(seed.student.id) == []
