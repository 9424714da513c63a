"""
支付状态对账服务
以支付网关为准，轮询待支付链接并把状态同步到支付链接和交易
"""

import asyncio
import logging
from typing import Optional

from app.core.config import settings
from app.core.exceptions import ReasonCode, NotFoundError, ValidationError, ConflictError, BusinessException
from app.integrations.yapay_client import YapayClient
from app.models.payment_link import (
    PaymentLink, PaymentLinkStatus, ReconciliationDetail, ReconciliationSummary, StudentPaymentCheck
)
from app.models.transaction import PaymentStatus
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.repositories.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)


# 网关状态文本 -> 系统状态
PROVIDER_STATUS_MAP = {
    "waiting_payment": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    "em análise": PaymentStatus.PENDING,
    "in_analysis": PaymentStatus.PENDING,
    "canceled": PaymentStatus.CANCELLED,
    "cancelled": PaymentStatus.CANCELLED,
    "disapproved": PaymentStatus.CANCELLED,
    "chargeback": PaymentStatus.CANCELLED,
    "approved": PaymentStatus.PAID,
    "paid": PaymentStatus.PAID,
    "completed": PaymentStatus.PAID,
}

PAID_KEYWORDS = ("approv", "paid", "pago")
CANCELLED_KEYWORDS = ("cancel", "denied", "reject")


def map_provider_status(raw_status: Optional[str]) -> PaymentStatus:
    """把网关状态文本映射为系统状态，无法识别时视为待支付"""
    normalized = (raw_status or "").strip().lower()

    mapped = PROVIDER_STATUS_MAP.get(normalized)
    if mapped is not None:
        return mapped

    if any(keyword in normalized for keyword in PAID_KEYWORDS):
        return PaymentStatus.PAID
    if any(keyword in normalized for keyword in CANCELLED_KEYWORDS):
        return PaymentStatus.CANCELLED

    if normalized:
        logger.warning(f"未识别的网关状态 '{raw_status}'，按待支付处理")
    return PaymentStatus.PENDING


class ReconciliationService:
    """支付状态对账服务"""

    def __init__(
        self,
        payment_link_repo: PaymentLinkRepository,
        transaction_repo: TransactionRepository,
        provider: YapayClient,
        timeout: Optional[float] = None
    ):
        self.payment_link_repo = payment_link_repo
        self.transaction_repo = transaction_repo
        self.provider = provider
        self.timeout = timeout or settings.payment_status_check_timeout_seconds

    async def apply_status(self, link: PaymentLink, new_status: PaymentStatus) -> bool:
        """
        把新状态写入支付链接及其交易，两者在同一原子单元内更新
        状态未变化时不写入，返回是否发生了更新
        """
        new_link_status = PaymentLinkStatus.from_payment_status(new_status)
        if new_link_status == link.status:
            return False

        async with self.payment_link_repo.atomic():
            if new_status == PaymentStatus.PENDING and link.transaction_id is not None:
                # 交易回到待支付前，学员不能已有其他待支付交易
                if await self.transaction_repo.has_pending_transaction(
                    link.student_id, exclude_id=link.transaction_id
                ):
                    raise ConflictError(
                        "该学员已有待支付的交易",
                        ReasonCode.PENDING_TRANSACTION_EXISTS,
                        field="status"
                    )
            await self.payment_link_repo.update_status(link.id, new_link_status)
            if link.transaction_id is not None:
                await self.transaction_repo.update_payment_status(link.transaction_id, new_status)

        logger.info(
            f"支付链接 {link.order_number} 状态更新: {link.status.to_payment_status().value} -> {new_status.value}"
        )
        return True

    async def reconcile_one(self, link: PaymentLink) -> ReconciliationDetail:
        """查询网关并同步单个支付链接，网关状态不变时重复调用不会产生写入"""
        old_status = link.status.to_payment_status()
        provider_status = await asyncio.wait_for(
            self.provider.get_charge_status(link.order_number),
            timeout=self.timeout
        )
        new_status = map_provider_status(provider_status)
        updated = await self.apply_status(link, new_status)

        return ReconciliationDetail(
            payment_link_id=link.id,
            order_number=link.order_number,
            provider_status=provider_status,
            old_status=old_status,
            new_status=new_status,
            updated=updated
        )

    async def reconcile_all(self) -> ReconciliationSummary:
        """检查全部待支付链接，单个链接失败不影响其余链接"""
        db_links = await self.payment_link_repo.list_pending()
        links = [self.payment_link_repo.to_model(link) for link in db_links]
        summary = ReconciliationSummary(checked=len(links))
        logger.info(f"开始支付状态对账，待检查链接 {len(links)} 个")

        # 结束读取事务，之后每个链接的原子单元各自提交，网关请求期间不持有行锁
        await self.payment_link_repo.commit()

        for link in links:
            try:
                detail = await self.reconcile_one(link)
            except asyncio.TimeoutError:
                logger.error(f"查询支付链接 {link.order_number} 超时")
                detail = self._error_detail(link, f"查询超时 ({self.timeout}s)")
            except Exception as e:
                logger.error(f"对账支付链接 {link.order_number} 失败: {e}", exc_info=not isinstance(e, BusinessException))
                detail = self._error_detail(link, str(e))
            summary.add(detail)

        logger.info(f"支付状态对账完成: 检查 {summary.checked}, 更新 {summary.updated}, 失败 {summary.errors}")
        return summary

    def _error_detail(self, link: PaymentLink, error: str) -> ReconciliationDetail:
        return ReconciliationDetail(
            payment_link_id=link.id,
            order_number=link.order_number,
            old_status=link.status.to_payment_status(),
            success=False,
            error=error
        )

    async def check_student_payment(self, student_id: int) -> StudentPaymentCheck:
        """按需检查学员最新的支付链接"""
        db_link = await self.payment_link_repo.get_latest_for_student(student_id)
        if not db_link:
            raise NotFoundError("学员没有支付链接", ReasonCode.PAYMENT_LINK_NOT_FOUND, field="student_id")

        detail = await self.reconcile_one(self.payment_link_repo.to_model(db_link))
        return StudentPaymentCheck(
            order_number=detail.order_number,
            old_status=detail.old_status,
            new_status=detail.new_status,
            updated=detail.updated
        )

    async def update_payment_link_status(self, link_id: int, status: int) -> PaymentLink:
        """手动设置支付链接状态（1待支付 2已支付 3已取消），同步到交易"""
        try:
            new_link_status = PaymentLinkStatus(status)
        except ValueError:
            raise ValidationError("无效的支付链接状态", ReasonCode.INVALID_PAYMENT_STATUS, field="status")

        db_link = await self.payment_link_repo.get_by_id(link_id)
        if not db_link:
            raise NotFoundError("支付链接不存在", ReasonCode.PAYMENT_LINK_NOT_FOUND, field="id")

        link = self.payment_link_repo.to_model(db_link)
        if await self.apply_status(link, new_link_status.to_payment_status()):
            link = link.model_copy(update={"status": new_link_status})
        return link
