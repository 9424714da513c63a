"""
支付状态定时对账任务
"""

import logging

from app.core.database import get_session_maker
from app.integrations.yapay_client import get_yapay_client
from app.models.payment_link import ReconciliationSummary
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.reconciliation_service import ReconciliationService

logger = logging.getLogger(__name__)


async def run_payment_status_check() -> ReconciliationSummary:
    """使用独立会话执行一轮对账，每个链接的更新单独提交"""
    session_maker = get_session_maker()
    async with session_maker() as session:
        service = ReconciliationService(
            payment_link_repo=PaymentLinkRepository(session),
            transaction_repo=TransactionRepository(session),
            provider=get_yapay_client()
        )
        summary = await service.reconcile_all()

    if summary.errors:
        logger.warning(f"定时对账有 {summary.errors} 个支付链接失败")
    return summary
