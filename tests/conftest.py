"""
测试配置文件 - pytest fixtures和共用配置
"""

import pytest
from unittest.mock import AsyncMock

from app.models.user import ActingUser, UserRole
from app.repositories.coupon_repository import CouponRepository
from app.repositories.course_repository import CourseRepository
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.repositories.student_repository import StudentRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository


@pytest.fixture
def admin_user():
    return ActingUser(user_id=1, role=UserRole.ADMIN)


@pytest.fixture
def seller_user():
    return ActingUser(user_id=2, role=UserRole.SELLER)


@pytest.fixture
def other_seller():
    return ActingUser(user_id=99, role=UserRole.SELLER)


@pytest.fixture
def mock_coupon_repo():
    return AsyncMock(spec=CouponRepository)


@pytest.fixture
def mock_transaction_repo():
    return AsyncMock(spec=TransactionRepository)


@pytest.fixture
def mock_student_repo():
    return AsyncMock(spec=StudentRepository)


@pytest.fixture
def mock_payment_link_repo():
    return AsyncMock(spec=PaymentLinkRepository)


@pytest.fixture
def mock_course_repo():
    return AsyncMock(spec=CourseRepository)


@pytest.fixture
def mock_user_repo():
    return AsyncMock(spec=UserRepository)
