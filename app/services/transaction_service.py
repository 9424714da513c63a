"""
交易业务服务层
负责交易的创建、修改、删除，保证交易、课程明细、优惠券计数和支付链接在同一原子单元内变更
"""

import logging
from typing import Optional, Dict, Any
from datetime import datetime

from app.core.exceptions import (
    ReasonCode, NotFoundError, ValidationError, ConflictError, PermissionDeniedError
)
from app.models.coupon import Coupon, CouponValidationStatus
from app.models.student import StudentCreate
from app.models.transaction import (
    Transaction, TransactionCreate, TransactionUpdate, TransactionFilter,
    TransactionPage, PaymentStatus
)
from app.models.user import ActingUser, UserRole
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.student_repository import StudentRepository
from app.repositories.coupon_repository import CouponRepository
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.services.coupon_service import CouponService, VALIDATION_ERRORS

logger = logging.getLogger(__name__)


def build_transaction_filter(
    acting_user: ActingUser,
    student_id: Optional[int] = None,
    user_id: Optional[int] = None,
    payment_status: Optional[PaymentStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    course_id: Optional[int] = None,
    page: int = 1,
    limit: int = 10
) -> TransactionFilter:
    """构建交易查询条件，非管理员只能查看自己创建的交易"""
    created_by_id = user_id if acting_user.is_admin else acting_user.user_id
    return TransactionFilter(
        student_id=student_id,
        created_by_id=created_by_id,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
        course_id=course_id,
        page=page,
        limit=limit
    )


class TransactionService:
    """交易业务服务"""

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        student_repo: StudentRepository,
        coupon_repo: CouponRepository,
        payment_link_repo: PaymentLinkRepository,
        coupon_service: CouponService
    ):
        self.transaction_repo = transaction_repo
        self.student_repo = student_repo
        self.coupon_repo = coupon_repo
        self.payment_link_repo = payment_link_repo
        self.coupon_service = coupon_service

    # ---------- 查询 ----------

    async def get_transaction(self, transaction_id: int, acting_user: ActingUser) -> Transaction:
        """获取交易详情，仅管理员和创建人可见"""
        db_transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not db_transaction:
            raise NotFoundError("交易不存在", ReasonCode.TRANSACTION_NOT_FOUND, field="id")
        if not acting_user.can_access(db_transaction.created_by_id):
            raise PermissionDeniedError("无权查看该交易")
        return self.transaction_repo.to_model(db_transaction)

    async def list_transactions(self, filters: TransactionFilter) -> TransactionPage:
        """分页查询交易"""
        db_transactions, total = await self.transaction_repo.list_transactions(filters)
        return TransactionPage(
            items=[self.transaction_repo.to_model(t) for t in db_transactions],
            total=total,
            page=filters.page,
            limit=filters.limit
        )

    # ---------- 创建 ----------

    def _check_create_input(self, data: TransactionCreate) -> None:
        if not data.courses:
            raise ValidationError("至少需要选择一门课程", ReasonCode.COURSES_REQUIRED, field="courses")
        if data.total_value is None or data.total_value <= 0:
            raise ValidationError("总金额必须大于0", ReasonCode.INVALID_TOTAL_VALUE, field="total_value")

    def _initial_payment(self, data: TransactionCreate, acting_user: ActingUser):
        """计算初始支付状态和支付时间；销售创建的交易一律为待支付"""
        status = data.payment_status
        if acting_user.role == UserRole.SELLER:
            status = PaymentStatus.PENDING
        payment_date = datetime.now() if status == PaymentStatus.PAID else data.payment_date
        return status, payment_date

    async def _ensure_no_pending(self, student_id: int, exclude_id: Optional[int] = None) -> None:
        if await self.transaction_repo.has_pending_transaction(student_id, exclude_id=exclude_id):
            raise ConflictError(
                "该学员已有待支付的交易",
                ReasonCode.PENDING_TRANSACTION_EXISTS,
                field="student_id"
            )

    async def _consume_coupon(self, coupon_id: int) -> None:
        """在当前原子单元内占用一次优惠券，已达上限时整体回滚"""
        if not await self.coupon_repo.increment_usage(coupon_id):
            reason_code, message = VALIDATION_ERRORS[CouponValidationStatus.USAGE_LIMIT_EXCEEDED]
            raise ValidationError(message, reason_code, field="coupon_code")

    async def _insert_transaction(
        self,
        student_id: int,
        data: TransactionCreate,
        acting_user: ActingUser,
        coupon: Optional[Coupon]
    ):
        status, payment_date = self._initial_payment(data, acting_user)
        db_transaction = await self.transaction_repo.create_transaction_with_courses(
            student_id=student_id,
            created_by_id=acting_user.user_id,
            courses=data.courses,
            total_value=data.total_value,
            payment_status=status,
            payment_type=data.payment_type,
            installments=data.installments,
            payment_date=payment_date,
            payment_forecast_date=data.payment_forecast_date,
            coupon_id=coupon.id if coupon else None,
            discount_amount=data.discount_amount
        )
        if coupon:
            await self._consume_coupon(coupon.id)
        return db_transaction

    async def create_transaction(self, data: TransactionCreate, acting_user: ActingUser) -> Transaction:
        """
        创建交易
        优惠券在原子单元之前完成查找和校验，计数递增与交易、课程明细一同提交
        """
        self._check_create_input(data)

        if data.student_id is None or not await self.student_repo.get_by_id(data.student_id):
            raise NotFoundError("学员不存在", ReasonCode.STUDENT_NOT_FOUND, field="student_id")

        coupon = None
        if data.coupon_code:
            coupon = await self.coupon_service.resolve_and_validate(data.coupon_code)

        async with self.transaction_repo.atomic():
            # 锁定学员行，串行化同一学员的并发创建
            await self.student_repo.get_by_id(data.student_id, for_update=True)
            await self._ensure_no_pending(data.student_id)
            db_transaction = await self._insert_transaction(data.student_id, data, acting_user, coupon)

        logger.info(f"创建交易 {db_transaction.id} (学员: {data.student_id}, 优惠券: {coupon.code if coupon else None})")
        return await self._reload(db_transaction.id)

    async def add_courses(
        self,
        student_id: int,
        data: TransactionCreate,
        acting_user: ActingUser
    ) -> Transaction:
        """为已有学员追加课程：新建一笔交易，历史交易保持不变"""
        return await self.create_transaction(data.model_copy(update={"student_id": student_id}), acting_user)

    async def create_student_with_transaction(
        self,
        student_data: StudentCreate,
        data: TransactionCreate,
        acting_user: ActingUser
    ) -> Transaction:
        """新学员和首笔交易一起创建，任何一步失败都不会留下学员记录"""
        self._check_create_input(data)

        coupon = None
        if data.coupon_code:
            coupon = await self.coupon_service.resolve_and_validate(data.coupon_code)

        async with self.transaction_repo.atomic():
            if await self.student_repo.find_with_pending_by_cpf(student_data.cpf):
                raise ConflictError(
                    "该CPF已有学员存在待支付的交易",
                    ReasonCode.PENDING_TRANSACTION_EXISTS,
                    field="cpf"
                )
            db_student = await self.student_repo.create_student(student_data, acting_user.user_id)
            db_transaction = await self._insert_transaction(db_student.id, data, acting_user, coupon)

        logger.info(f"创建学员 {db_student.id} 及交易 {db_transaction.id}")
        return await self._reload(db_transaction.id)

    # ---------- 修改 ----------

    async def _load_for_write(self, transaction_id: int, acting_user: ActingUser) -> Transaction:
        db_transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not db_transaction:
            raise NotFoundError("交易不存在", ReasonCode.TRANSACTION_NOT_FOUND, field="id")
        if not acting_user.can_access(db_transaction.created_by_id):
            raise PermissionDeniedError("无权修改该交易")
        return self.transaction_repo.to_model(db_transaction)

    async def _reload(self, transaction_id: int) -> Transaction:
        db_transaction = await self.transaction_repo.get_by_id(transaction_id)
        return self.transaction_repo.to_model(db_transaction)

    async def update_transaction(
        self,
        transaction_id: int,
        data: TransactionUpdate,
        acting_user: ActingUser
    ) -> Transaction:
        """
        修改交易
        已支付的交易不能修改课程和折扣；更换优惠券时新券+1、旧券-1，
        coupon_code为空字符串时移除优惠券并-1
        """
        current = await self._load_for_write(transaction_id, acting_user)
        changes = data.model_dump(exclude_unset=True)

        if current.is_paid:
            discount_changed = (
                "discount_amount" in changes and data.discount_amount != current.discount_amount
            )
            if data.courses is not None or discount_changed:
                raise ValidationError(
                    "已支付的交易不能修改课程或折扣",
                    ReasonCode.TRANSACTION_PAID,
                    field="courses" if data.courses is not None else "discount_amount"
                )

        if data.courses is not None and not data.courses:
            raise ValidationError("至少需要选择一门课程", ReasonCode.COURSES_REQUIRED, field="courses")

        if (
            data.payment_status == PaymentStatus.PENDING
            and current.payment_status != PaymentStatus.PENDING
        ):
            await self._ensure_no_pending(current.student_id, exclude_id=transaction_id)

        new_coupon = None
        clear_coupon = False
        if data.coupon_code:
            new_coupon = await self.coupon_service.resolve(data.coupon_code)
            if new_coupon.id == current.coupon_id:
                new_coupon = None
            else:
                status = self.coupon_service.validate(new_coupon)
                if status != CouponValidationStatus.VALID:
                    reason_code, message = VALIDATION_ERRORS[status]
                    raise ValidationError(message, reason_code, field="coupon_code")
        elif data.coupon_code == "":
            clear_coupon = current.coupon_id is not None

        values: Dict[str, Any] = {
            key: changes[key]
            for key in (
                "total_value", "payment_type", "installments", "payment_status",
                "payment_date", "payment_forecast_date", "discount_amount"
            )
            if key in changes and changes[key] is not None
        }
        if data.payment_status == PaymentStatus.PAID:
            values["payment_date"] = datetime.now()

        async with self.transaction_repo.atomic():
            if new_coupon:
                await self._consume_coupon(new_coupon.id)
                if current.coupon_id:
                    await self.coupon_repo.decrement_usage(current.coupon_id)
                values["coupon_id"] = new_coupon.id
            elif clear_coupon:
                await self.coupon_repo.decrement_usage(current.coupon_id)
                values["coupon_id"] = None

            if data.courses:
                await self.transaction_repo.replace_courses(transaction_id, data.courses)

            if values:
                await self.transaction_repo.update_transaction(transaction_id, values)

        return await self._reload(transaction_id)

    # ---------- 删除 ----------

    async def delete_transaction(self, transaction_id: int, acting_user: ActingUser) -> None:
        """
        删除未支付的交易
        按顺序：归还优惠券次数、删除支付链接、删除课程明细、删除交易
        """
        current = await self._load_for_write(transaction_id, acting_user)
        if current.is_paid:
            raise ValidationError("已支付的交易不能删除", ReasonCode.TRANSACTION_PAID, field="id")

        async with self.transaction_repo.atomic():
            if current.coupon_id:
                await self.coupon_repo.decrement_usage(current.coupon_id)
            await self.payment_link_repo.delete_for_transaction(transaction_id)
            await self.transaction_repo.delete_courses(transaction_id)
            await self.transaction_repo.delete_transaction(transaction_id)

        logger.info(f"删除交易 {transaction_id}")
