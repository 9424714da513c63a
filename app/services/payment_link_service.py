"""
支付链接业务服务层
向支付网关申请收款链接并保存，同一交易同时最多只有一个待支付链接
"""

import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from app.core.config import settings
from app.core.exceptions import ReasonCode, NotFoundError, ValidationError, PermissionDeniedError
from app.integrations.yapay_client import YapayClient
from app.models.payment_link import (
    PaymentLink, PaymentLinkRequest, ChargeRequest, PAYMENT_METHOD_CODES
)
from app.models.user import ActingUser
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.student_repository import StudentRepository
from app.repositories.course_repository import CourseRepository

logger = logging.getLogger(__name__)


def build_order_number(cpf_digits: str, now_ms: Optional[int] = None) -> str:
    """订单号 = CPF数字 + 毫秒时间戳，作为网关侧的幂等键"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{cpf_digits}{now_ms}"


class PaymentLinkService:
    """支付链接业务服务"""

    def __init__(
        self,
        payment_link_repo: PaymentLinkRepository,
        transaction_repo: TransactionRepository,
        student_repo: StudentRepository,
        course_repo: CourseRepository,
        provider: YapayClient
    ):
        self.payment_link_repo = payment_link_repo
        self.transaction_repo = transaction_repo
        self.student_repo = student_repo
        self.course_repo = course_repo
        self.provider = provider

    async def list_student_links(self, student_id: int) -> List[PaymentLink]:
        db_links = await self.payment_link_repo.list_for_student(student_id)
        return [self.payment_link_repo.to_model(link) for link in db_links]

    async def _link_owner_transaction(self, existing, student_id: int):
        """待支付链接对应的交易，链接未关联交易时返回None"""
        if existing.transaction_id is None:
            return None
        db_transaction = await self.transaction_repo.get_by_id(existing.transaction_id)
        if not db_transaction or db_transaction.student_id != student_id:
            return None
        return db_transaction

    async def generate_payment_link(self, request: PaymentLinkRequest, acting_user: ActingUser) -> PaymentLink:
        """
        生成支付链接
        已存在待支付链接时直接返回；未指定交易时使用学员最新的交易
        """
        db_student = await self.student_repo.get_by_id(request.student_id)
        if not db_student:
            raise NotFoundError("学员不存在", ReasonCode.STUDENT_NOT_FOUND, field="student_id")
        student = self.student_repo.to_model(db_student)

        if request.transaction_id is not None:
            db_transaction = await self.transaction_repo.get_by_id(request.transaction_id)
            if not db_transaction or db_transaction.student_id != student.id:
                raise NotFoundError("交易不存在", ReasonCode.TRANSACTION_NOT_FOUND, field="transaction_id")
            existing = await self.payment_link_repo.get_pending_for_transaction(db_transaction.id)
        else:
            existing = await self.payment_link_repo.get_pending_for_student(student.id)
            if existing:
                db_transaction = await self._link_owner_transaction(existing, student.id)
            else:
                db_transaction = await self.transaction_repo.get_latest_for_student(student.id)
                if not db_transaction:
                    raise NotFoundError("学员没有交易记录", ReasonCode.TRANSACTION_NOT_FOUND, field="student_id")

        owner_id = db_transaction.created_by_id if db_transaction else student.user_id
        if not acting_user.can_access(owner_id):
            raise PermissionDeniedError("无权为该交易生成支付链接")

        if existing:
            logger.info(f"复用待支付链接 {existing.order_number}")
            return self.payment_link_repo.to_model(existing)

        transaction = self.transaction_repo.to_model(db_transaction)
        value = transaction.payable_value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        if value <= 0:
            raise ValidationError("应付金额必须大于0", ReasonCode.INVALID_TOTAL_VALUE, field="total_value")

        descriptions = await self.course_repo.describe_courses(transaction.courses)
        max_split = request.max_split_transaction or settings.payment_link_max_split_transaction

        charge_request = ChargeRequest(
            order_number=build_order_number(student.cpf_digits),
            code=str(transaction.id),
            value=f"{value:.2f}",
            description=", ".join(descriptions) or settings.payment_link_default_code,
            max_split_transaction=str(max_split),
            available_payment_methods=PAYMENT_METHOD_CODES[request.payment_method],
            customer_email=student.email
        )
        charge = await self.provider.create_charge(charge_request)

        async with self.payment_link_repo.atomic():
            # 锁定交易行后再确认，并发请求只保存一个待支付链接
            await self.transaction_repo.lock(transaction.id)
            concurrent = await self.payment_link_repo.get_pending_for_transaction(transaction.id)
            if concurrent:
                logger.warning(
                    f"交易 {transaction.id} 已由并发请求生成链接 {concurrent.order_number}，"
                    f"网关收款 {charge_request.order_number} 未保存"
                )
                return self.payment_link_repo.to_model(concurrent)

            db_link = await self.payment_link_repo.create_payment_link(
                order_number=charge.order_number or charge_request.order_number,
                value=charge.value,
                payment_link=charge.payment_link,
                student_id=student.id,
                transaction_id=transaction.id,
                provider_id=charge.id,
                code=charge.code,
                description=charge.description,
                max_split_transaction=charge.max_split_transaction,
                available_payment_methods=charge.available_payment_methods
            )

        logger.info(f"生成支付链接 {db_link.order_number} (交易: {transaction.id})")
        return self.payment_link_repo.to_model(db_link)
