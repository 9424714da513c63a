"""
支付状态对账测试
"""

import asyncio
import pytest
from unittest.mock import AsyncMock

from app.core.exceptions import BusinessException, ExternalServiceError, ReasonCode
from app.integrations.yapay_client import YapayClient
from app.models.payment_link import PaymentLinkStatus
from app.models.transaction import PaymentStatus
from app.services.reconciliation_service import ReconciliationService, map_provider_status
from tests.factories import make_payment_link, with_unit_of_work, db_row


class TestMapProviderStatus:
    """网关状态映射"""

    @pytest.mark.parametrize("raw, expected", [
        ("waiting_payment", PaymentStatus.PENDING),
        ("Em Análise", PaymentStatus.PENDING),
        ("in_analysis", PaymentStatus.PENDING),
        ("approved", PaymentStatus.PAID),
        ("PAID", PaymentStatus.PAID),
        ("completed", PaymentStatus.PAID),
        ("canceled", PaymentStatus.CANCELLED),
        ("disapproved", PaymentStatus.CANCELLED),
        ("chargeback", PaymentStatus.CANCELLED),
    ])
    def test_known_statuses(self, raw, expected):
        assert map_provider_status(raw) == expected

    @pytest.mark.parametrize("raw, expected", [
        ("pagamento aprovado pago", PaymentStatus.PAID),
        ("payment_denied", PaymentStatus.CANCELLED),
        ("rejected_by_bank", PaymentStatus.CANCELLED),
    ])
    def test_keyword_fallback(self, raw, expected):
        assert map_provider_status(raw) == expected

    @pytest.mark.parametrize("raw", ["xyz", "", None])
    def test_unknown_is_pending(self, raw):
        assert map_provider_status(raw) == PaymentStatus.PENDING


@pytest.mark.asyncio
class TestReconciliationService:
    """ReconciliationService测试类"""

    @pytest.fixture
    def provider(self):
        return AsyncMock(spec=YapayClient)

    @pytest.fixture
    def uow(self, mock_payment_link_repo):
        return with_unit_of_work(mock_payment_link_repo)

    @pytest.fixture
    def service(self, mock_payment_link_repo, mock_transaction_repo, provider, uow):
        return ReconciliationService(
            payment_link_repo=mock_payment_link_repo,
            transaction_repo=mock_transaction_repo,
            provider=provider,
            timeout=1
        )

    async def test_paid_updates_link_and_transaction(
        self, service, uow, provider, mock_payment_link_repo, mock_transaction_repo
    ):
        """测试网关已支付时同步链接和交易"""
        provider.get_charge_status.return_value = "approved"
        link = make_payment_link()

        detail = await service.reconcile_one(link)

        assert detail.updated is True
        assert detail.old_status == PaymentStatus.PENDING
        assert detail.new_status == PaymentStatus.PAID
        assert uow.committed == 1
        mock_payment_link_repo.update_status.assert_called_once_with(50, PaymentLinkStatus.PAID)
        mock_transaction_repo.update_payment_status.assert_called_once_with(100, PaymentStatus.PAID)

    async def test_unchanged_status_writes_nothing(
        self, service, uow, provider, mock_payment_link_repo, mock_transaction_repo
    ):
        """测试状态未变化时重复对账不产生写入"""
        provider.get_charge_status.return_value = "waiting_payment"
        link = make_payment_link()

        first = await service.reconcile_one(link)
        second = await service.reconcile_one(link)

        assert first.updated is False
        assert second.updated is False
        assert uow.entered == 0
        mock_payment_link_repo.update_status.assert_not_called()
        mock_transaction_repo.update_payment_status.assert_not_called()

    async def test_link_without_transaction(
        self, service, provider, mock_payment_link_repo, mock_transaction_repo
    ):
        provider.get_charge_status.return_value = "canceled"

        detail = await service.reconcile_one(make_payment_link(transaction_id=None))

        assert detail.new_status == PaymentStatus.CANCELLED
        mock_payment_link_repo.update_status.assert_called_once_with(50, PaymentLinkStatus.CANCELLED)
        mock_transaction_repo.update_payment_status.assert_not_called()

    async def test_reconcile_all_isolates_failures(
        self, service, provider, mock_payment_link_repo
    ):
        """测试单个链接失败不影响其他链接"""
        links = [
            make_payment_link(id=1, order_number="A"),
            make_payment_link(id=2, order_number="B"),
            make_payment_link(id=3, order_number="C"),
        ]
        mock_payment_link_repo.list_pending.return_value = [db_row(id=link.id) for link in links]
        mock_payment_link_repo.to_model.side_effect = links

        statuses = {"A": "approved", "C": "waiting_payment"}

        async def fake_status(order_number):
            if order_number == "B":
                raise ExternalServiceError("支付网关返回错误: HTTP 500")
            return statuses[order_number]

        provider.get_charge_status.side_effect = fake_status

        summary = await service.reconcile_all()

        assert summary.checked == 3
        assert summary.updated == 1
        assert summary.errors == 1
        failed = [d for d in summary.details if not d.success]
        assert failed[0].order_number == "B"
        assert "HTTP 500" in failed[0].error
        mock_payment_link_repo.update_status.assert_called_once_with(1, PaymentLinkStatus.PAID)

    async def test_reconcile_all_timeout(self, service, provider, mock_payment_link_repo):
        """测试网关查询超时记为失败"""
        mock_payment_link_repo.list_pending.return_value = [db_row(id=1)]
        mock_payment_link_repo.to_model.return_value = make_payment_link(id=1)

        async def slow_status(order_number):
            await asyncio.sleep(5)
            return "approved"

        provider.get_charge_status.side_effect = slow_status
        service.timeout = 0.01

        summary = await service.reconcile_all()

        assert summary.errors == 1
        assert summary.updated == 0
        mock_payment_link_repo.update_status.assert_not_called()

    async def test_reconcile_all_empty(self, service, mock_payment_link_repo):
        mock_payment_link_repo.list_pending.return_value = []

        summary = await service.reconcile_all()

        assert summary.checked == 0
        assert summary.details == []

    async def test_check_student_payment(self, service, provider, mock_payment_link_repo):
        mock_payment_link_repo.get_latest_for_student.return_value = db_row(id=50)
        mock_payment_link_repo.to_model.return_value = make_payment_link()
        provider.get_charge_status.return_value = "paid"

        result = await service.check_student_payment(7)

        assert result.updated is True
        assert result.new_status == PaymentStatus.PAID
        mock_payment_link_repo.get_latest_for_student.assert_called_once_with(7)

    async def test_check_student_without_link(self, service, mock_payment_link_repo):
        mock_payment_link_repo.get_latest_for_student.return_value = None

        with pytest.raises(BusinessException) as exc_info:
            await service.check_student_payment(7)

        assert exc_info.value.reason_code == ReasonCode.PAYMENT_LINK_NOT_FOUND

    async def test_manual_status_update(
        self, service, mock_payment_link_repo, mock_transaction_repo
    ):
        """测试手动设置支付链接状态并同步交易"""
        mock_payment_link_repo.get_by_id.return_value = db_row(id=50)
        mock_payment_link_repo.to_model.return_value = make_payment_link(status=PaymentLinkStatus.PAID)

        result = await service.update_payment_link_status(50, 3)

        assert result.status == PaymentLinkStatus.CANCELLED
        mock_transaction_repo.update_payment_status.assert_called_once_with(100, PaymentStatus.CANCELLED)

    async def test_manual_status_update_invalid(self, service, mock_payment_link_repo):
        with pytest.raises(BusinessException) as exc_info:
            await service.update_payment_link_status(50, 7)

        assert exc_info.value.reason_code == ReasonCode.INVALID_PAYMENT_STATUS
        mock_payment_link_repo.get_by_id.assert_not_called()

    async def test_manual_status_update_missing_link(self, service, mock_payment_link_repo):
        mock_payment_link_repo.get_by_id.return_value = None

        with pytest.raises(BusinessException) as exc_info:
            await service.update_payment_link_status(50, 2)

        assert exc_info.value.reason_code == ReasonCode.PAYMENT_LINK_NOT_FOUND

    async def test_manual_reopen_rejected_when_student_has_pending(
        self, service, uow, mock_payment_link_repo, mock_transaction_repo
    ):
        """测试学员已有其他待支付交易时，不能把链接改回待支付"""
        mock_payment_link_repo.get_by_id.return_value = db_row(id=50)
        mock_payment_link_repo.to_model.return_value = make_payment_link(status=PaymentLinkStatus.CANCELLED)
        mock_transaction_repo.has_pending_transaction.return_value = True

        with pytest.raises(BusinessException) as exc_info:
            await service.update_payment_link_status(50, 1)

        assert exc_info.value.reason_code == ReasonCode.PENDING_TRANSACTION_EXISTS
        assert uow.rolled_back == 1
        mock_transaction_repo.has_pending_transaction.assert_called_once_with(7, exclude_id=100)
        mock_payment_link_repo.update_status.assert_not_called()
        mock_transaction_repo.update_payment_status.assert_not_called()

    async def test_manual_reopen_allowed_without_other_pending(
        self, service, mock_payment_link_repo, mock_transaction_repo
    ):
        mock_payment_link_repo.get_by_id.return_value = db_row(id=50)
        mock_payment_link_repo.to_model.return_value = make_payment_link(status=PaymentLinkStatus.CANCELLED)
        mock_transaction_repo.has_pending_transaction.return_value = False

        result = await service.update_payment_link_status(50, 1)

        assert result.status == PaymentLinkStatus.PENDING
        mock_transaction_repo.update_payment_status.assert_called_once_with(100, PaymentStatus.PENDING)

    async def test_reconcile_all_commits_before_provider_calls(
        self, service, provider, mock_payment_link_repo
    ):
        """测试查询网关前已结束读取事务，各链接的更新不会等到整轮结束才提交"""
        mock_payment_link_repo.list_pending.return_value = [db_row(id=1), db_row(id=2)]
        mock_payment_link_repo.to_model.side_effect = [
            make_payment_link(id=1, order_number="A"),
            make_payment_link(id=2, order_number="B"),
        ]
        commits_seen = []

        async def fake_status(order_number):
            commits_seen.append(mock_payment_link_repo.commit.await_count)
            return "approved"

        provider.get_charge_status.side_effect = fake_status

        summary = await service.reconcile_all()

        assert summary.updated == 2
        assert commits_seen == [1, 1]
