"""
数据模型包初始化文件
"""

from .user import UserRole, ActingUser
from .student import Student, StudentCreate
from .coupon import (
    Coupon,
    CouponCreate,
    CouponConfiguration,
    CouponUserType,
    ApplicationMode,
    CouponValidationStatus,
    PricingContext,
    PricingResult
)
from .transaction import (
    PaymentStatus,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
    TransactionCourseItem,
    TransactionFilter,
    TransactionPage
)
from .payment_link import (
    PaymentLink,
    PaymentLinkStatus,
    PaymentLinkRequest,
    PaymentMethod,
    ReconciliationSummary
)

__all__ = [
    "UserRole",
    "ActingUser",
    "Student",
    "StudentCreate",
    "Coupon",
    "CouponCreate",
    "CouponConfiguration",
    "CouponUserType",
    "ApplicationMode",
    "CouponValidationStatus",
    "PricingContext",
    "PricingResult",
    "PaymentStatus",
    "Transaction",
    "TransactionCreate",
    "TransactionUpdate",
    "TransactionCourseItem",
    "TransactionFilter",
    "TransactionPage",
    "PaymentLink",
    "PaymentLinkStatus",
    "PaymentLinkRequest",
    "PaymentMethod",
    "ReconciliationSummary"
]
