"""
支付链接与对账相关数据模型
"""

from decimal import Decimal
from datetime import datetime
from enum import Enum, IntEnum
from typing import List, Optional
from pydantic import BaseModel, Field, validator

from app.models.transaction import PaymentStatus


class PaymentLinkStatus(IntEnum):
    """支付链接状态（与网关约定的数值）"""
    PENDING = 1
    PAID = 2
    CANCELLED = 3

    @classmethod
    def from_payment_status(cls, status: PaymentStatus) -> "PaymentLinkStatus":
        if status == PaymentStatus.PAID:
            return cls.PAID
        if status == PaymentStatus.CANCELLED:
            return cls.CANCELLED
        return cls.PENDING

    def to_payment_status(self) -> PaymentStatus:
        return {
            PaymentLinkStatus.PENDING: PaymentStatus.PENDING,
            PaymentLinkStatus.PAID: PaymentStatus.PAID,
            PaymentLinkStatus.CANCELLED: PaymentStatus.CANCELLED,
        }[self]


class PaymentMethod(str, Enum):
    """收款方式"""
    PIX = "pix"
    CARD = "card"


# 网关支付方式代码
PAYMENT_METHOD_CODES = {
    PaymentMethod.PIX: "27",
    PaymentMethod.CARD: "3,4,5,16",
}


class PaymentLink(BaseModel):
    """支付链接模型"""

    id: int
    provider_id: Optional[int] = None
    order_number: str
    code: Optional[str] = None
    value: Decimal
    description: Optional[str] = None
    max_split_transaction: Optional[int] = None
    available_payment_methods: Optional[str] = None
    payment_link: str
    status: PaymentLinkStatus = PaymentLinkStatus.PENDING
    student_id: int
    transaction_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentLinkRequest(BaseModel):
    """生成支付链接请求"""

    student_id: int = Field(..., description="学员ID")
    transaction_id: Optional[int] = Field(None, description="交易ID，为空时使用学员最新交易")
    payment_method: PaymentMethod = Field(default=PaymentMethod.PIX, description="收款方式")
    max_split_transaction: Optional[int] = Field(None, ge=1, le=12, description="最大分期数")


class ChargeRequest(BaseModel):
    """网关创建收款请求体"""

    order_number: str
    code: str
    value: str
    description: str
    max_split_transaction: str
    available_payment_methods: str
    new_checkout: bool = True
    use_cards: bool = False
    customer_email: Optional[str] = None


class ChargeResponse(BaseModel):
    """网关创建收款响应"""

    id: Optional[int] = None
    order_number: str
    code: Optional[str] = None
    value: Decimal
    description: Optional[str] = None
    max_split_transaction: Optional[int] = None
    available_payment_methods: Optional[str] = None
    payment_link: str
    status: int = Field(default=1)

    @validator('status', pre=True)
    def normalize_status(cls, v):
        """网关可能返回布尔值或数字"""
        if isinstance(v, bool):
            return 1 if v else 0
        if v is None:
            return 1
        return v


class ReconciliationDetail(BaseModel):
    """单个支付链接的对账结果"""

    payment_link_id: int
    order_number: str
    provider_status: Optional[str] = None
    old_status: PaymentStatus
    new_status: Optional[PaymentStatus] = None
    updated: bool = False
    success: bool = True
    error: Optional[str] = None


class ReconciliationSummary(BaseModel):
    """批量对账汇总"""

    checked: int = 0
    updated: int = 0
    errors: int = 0
    details: List[ReconciliationDetail] = Field(default_factory=list)

    def add(self, detail: ReconciliationDetail) -> None:
        self.details.append(detail)
        if not detail.success:
            self.errors += 1
        elif detail.updated:
            self.updated += 1


class StudentPaymentCheck(BaseModel):
    """指定学员的支付状态检查结果"""

    order_number: str
    old_status: PaymentStatus
    new_status: PaymentStatus
    updated: bool
