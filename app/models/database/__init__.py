"""
数据库模型包初始化文件
"""

from .user_db import UserDB
from .student_db import StudentDB
from .course_db import CourseDB, CourseModalityDB, course_to_modality
from .transaction_db import TransactionDB, TransactionCourseDB
from .coupon_db import CouponDB, CouponConfigurationDB
from .payment_link_db import PaymentLinkDB

__all__ = [
    "UserDB",
    "StudentDB",
    "CourseDB",
    "CourseModalityDB",
    "course_to_modality",
    "TransactionDB",
    "TransactionCourseDB",
    "CouponDB",
    "CouponConfigurationDB",
    "PaymentLinkDB"
]
