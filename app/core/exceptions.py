"""
业务异常定义
所有可预期的业务失败都带有稳定的原因码，供调用方修正输入
"""

from enum import Enum
from typing import Optional, Dict, Any


class ReasonCode(str, Enum):
    """业务失败原因码"""
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    COURSES_REQUIRED = "COURSES_REQUIRED"
    INVALID_TOTAL_VALUE = "INVALID_TOTAL_VALUE"
    COUPON_NOT_FOUND = "COUPON_NOT_FOUND"
    COUPON_INACTIVE = "COUPON_INACTIVE"
    COUPON_EXPIRED = "COUPON_EXPIRED"
    COUPON_USAGE_LIMIT_EXCEEDED = "COUPON_USAGE_LIMIT_EXCEEDED"
    COUPON_NOT_APPLICABLE = "COUPON_NOT_APPLICABLE"
    COUPON_CONFIGURATION_INVALID = "COUPON_CONFIGURATION_INVALID"
    COUPON_CONFIGURATION_NOT_FOUND = "COUPON_CONFIGURATION_NOT_FOUND"
    USER_ALREADY_HAS_COUPON = "USER_ALREADY_HAS_COUPON"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_ROLE_MISMATCH = "USER_ROLE_MISMATCH"
    COUPON_CODE_GENERATION_FAILED = "COUPON_CODE_GENERATION_FAILED"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    TRANSACTION_PAID = "TRANSACTION_PAID"
    PENDING_TRANSACTION_EXISTS = "PENDING_TRANSACTION_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    PAYMENT_LINK_NOT_FOUND = "PAYMENT_LINK_NOT_FOUND"
    INVALID_PAYMENT_STATUS = "INVALID_PAYMENT_STATUS"
    PAYMENT_PROVIDER_ERROR = "PAYMENT_PROVIDER_ERROR"


class BusinessException(Exception):
    """业务异常基类"""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        reason_code: ReasonCode,
        field: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.reason_code = reason_code
        self.field = field
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """转换为响应体"""
        return {
            "code": self.reason_code.value,
            "message": self.message,
            "field": self.field
        }


class NotFoundError(BusinessException):
    """资源不存在"""
    status_code = 404


class ValidationError(BusinessException):
    """输入或前置条件校验失败"""
    status_code = 400


class ConflictError(BusinessException):
    """与现有状态冲突"""
    status_code = 409


class PermissionDeniedError(BusinessException):
    """无权操作"""
    status_code = 403

    def __init__(self, message: str = "无权执行此操作", field: Optional[str] = None):
        super().__init__(message, ReasonCode.PERMISSION_DENIED, field)


class ExternalServiceError(BusinessException):
    """外部支付网关调用失败"""
    status_code = 502

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, ReasonCode.PAYMENT_PROVIDER_ERROR, field)
