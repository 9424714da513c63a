"""
仓库包初始化文件 - 数据库访问层
"""

from .coupon_repository import CouponRepository
from .course_repository import CourseRepository
from .payment_link_repository import PaymentLinkRepository
from .student_repository import StudentRepository
from .transaction_repository import TransactionRepository
from .user_repository import UserRepository

__all__ = [
    "CouponRepository",
    "CourseRepository",
    "PaymentLinkRepository",
    "StudentRepository",
    "TransactionRepository",
    "UserRepository"
]
