"""
测试数据构造工具
"""

from decimal import Decimal
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

from app.models.coupon import Coupon, CouponConfiguration, ApplicationMode, CouponUserType
from app.models.student import Student
from app.models.transaction import Transaction, TransactionCourseItem, PaymentStatus
from app.models.payment_link import PaymentLink, PaymentLinkStatus


class FakeUnitOfWork:
    """模拟原子操作单元，记录提交与回滚"""

    def __init__(self):
        self.entered = 0
        self.committed = 0
        self.rolled_back = 0

    async def __aenter__(self):
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.committed += 1
        else:
            self.rolled_back += 1
        return False


def with_unit_of_work(repo_mock) -> FakeUnitOfWork:
    """让仓库的atomic()返回同一个FakeUnitOfWork"""
    uow = FakeUnitOfWork()
    repo_mock.atomic = MagicMock(return_value=uow)
    return uow


def db_row(**fields):
    """模拟数据库行对象"""
    return SimpleNamespace(**fields)


def make_coupon(**overrides) -> Coupon:
    data = dict(
        id=1,
        code="PROMO-ABC1",
        custom_name="Promo",
        user_id=None,
        user_type=CouponUserType.NONE,
        application_mode=ApplicationMode.GENERAL,
        active=True,
        expiration_date=datetime.now() + timedelta(days=30),
        usage_limit=None,
        usage_count=0,
        configurations=[
            CouponConfiguration(
                id=10,
                coupon_id=1,
                course_modality_id=5,
                discount_percent=Decimal("15"),
                commission_percent=Decimal("5")
            )
        ]
    )
    data.update(overrides)
    return Coupon(**data)


def make_transaction(**overrides) -> Transaction:
    data = dict(
        id=100,
        student_id=7,
        created_by_id=2,
        coupon_id=None,
        total_value=Decimal("200.00"),
        discount_amount=None,
        payment_status=PaymentStatus.PENDING,
        courses=[TransactionCourseItem(course_id=3, course_modality_id=5)]
    )
    data.update(overrides)
    return Transaction(**data)


def make_student(**overrides) -> Student:
    data = dict(
        id=7,
        full_name="João da Silva",
        cpf="123.456.789-01",
        email="joao@example.com",
        user_id=2
    )
    data.update(overrides)
    return Student(**data)


def make_payment_link(**overrides) -> PaymentLink:
    data = dict(
        id=50,
        order_number="123456789011700000000000",
        value=Decimal("200.00"),
        payment_link="https://pay.example.com/abc",
        status=PaymentLinkStatus.PENDING,
        student_id=7,
        transaction_id=100
    )
    data.update(overrides)
    return PaymentLink(**data)


