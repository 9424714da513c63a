"""
数据模型测试
"""

import pytest
from decimal import Decimal

from app.models.payment_link import (
    PaymentLinkStatus, ChargeResponse, ReconciliationSummary, ReconciliationDetail
)
from app.models.student import StudentCreate
from app.models.transaction import PaymentStatus, TransactionPage
from app.models.user import ActingUser, UserRole
from tests.factories import make_transaction


class TestActingUser:

    def test_admin_can_access_everything(self):
        admin = ActingUser(user_id=1, role=UserRole.ADMIN)
        assert admin.can_access(42)

    def test_seller_only_own_records(self):
        seller = ActingUser(user_id=2, role=UserRole.SELLER)
        assert seller.can_access(2)
        assert not seller.can_access(3)


class TestPaymentLinkStatus:

    @pytest.mark.parametrize("status, link_status", [
        (PaymentStatus.PENDING, PaymentLinkStatus.PENDING),
        (PaymentStatus.PARTIAL, PaymentLinkStatus.PENDING),
        (PaymentStatus.PAID, PaymentLinkStatus.PAID),
        (PaymentStatus.CANCELLED, PaymentLinkStatus.CANCELLED),
    ])
    def test_from_payment_status(self, status, link_status):
        assert PaymentLinkStatus.from_payment_status(status) == link_status

    def test_numeric_values(self):
        assert [s.value for s in PaymentLinkStatus] == [1, 2, 3]


class TestChargeResponse:

    def test_boolean_status(self):
        charge = ChargeResponse(order_number="A", value="10", payment_link="https://x", status=False)
        assert charge.status == 0

    def test_missing_status_is_pending(self):
        charge = ChargeResponse(order_number="A", value="10", payment_link="https://x", status=None)
        assert charge.status == 1


class TestTransactionModels:

    def test_payable_value_never_negative(self):
        transaction = make_transaction(total_value=Decimal("50"), discount_amount=Decimal("80"))
        assert transaction.payable_value == Decimal("0")

    def test_total_pages(self):
        page = TransactionPage(items=[], total=21, page=1, limit=10)
        assert page.total_pages == 3

    def test_student_cpf_needs_eleven_digits(self):
        with pytest.raises(ValueError):
            StudentCreate(full_name="Ana", cpf="123.456.789")


class TestReconciliationSummary:

    def test_add_counts(self):
        summary = ReconciliationSummary(checked=3)
        summary.add(ReconciliationDetail(
            payment_link_id=1, order_number="A", old_status=PaymentStatus.PENDING,
            new_status=PaymentStatus.PAID, updated=True
        ))
        summary.add(ReconciliationDetail(
            payment_link_id=2, order_number="B", old_status=PaymentStatus.PENDING,
            new_status=PaymentStatus.PENDING
        ))
        summary.add(ReconciliationDetail(
            payment_link_id=3, order_number="C", old_status=PaymentStatus.PENDING,
            success=False, error="timeout"
        ))

        assert (summary.checked, summary.updated, summary.errors) == (3, 1, 1)
