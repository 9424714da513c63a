"""
交易相关数据模型
"""

import math
from decimal import Decimal
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from enum import Enum


class PaymentStatus(str, Enum):
    """交易支付状态"""
    PENDING = "pending"  # 待支付
    PARTIAL = "partial"  # 部分支付
    PAID = "paid"  # 已支付
    CANCELLED = "cancelled"  # 已取消


class TransactionCourseItem(BaseModel):
    """交易中的课程明细"""

    course_id: int = Field(..., description="课程ID")
    course_modality_id: int = Field(..., description="授课形式ID")


class TransactionCreate(BaseModel):
    """创建交易模型"""

    student_id: Optional[int] = Field(None, description="学员ID")
    courses: List[TransactionCourseItem] = Field(default_factory=list, description="购买课程")
    total_value: Decimal = Field(..., description="总金额")
    payment_type: Optional[str] = Field(None, max_length=50, description="支付方式")
    installments: Optional[int] = Field(None, ge=1, description="分期数")
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, description="支付状态")
    payment_date: Optional[datetime] = Field(None, description="支付时间")
    payment_forecast_date: Optional[datetime] = Field(None, description="预计支付时间")
    coupon_code: Optional[str] = Field(None, description="优惠券代码或名称")
    discount_amount: Optional[Decimal] = Field(None, ge=0, description="折扣金额")


class TransactionUpdate(BaseModel):
    """更新交易模型，coupon_code为空字符串表示移除优惠券"""

    courses: Optional[List[TransactionCourseItem]] = None
    total_value: Optional[Decimal] = Field(None, gt=0)
    payment_type: Optional[str] = Field(None, max_length=50)
    installments: Optional[int] = Field(None, ge=1)
    payment_status: Optional[PaymentStatus] = None
    payment_date: Optional[datetime] = None
    payment_forecast_date: Optional[datetime] = None
    coupon_code: Optional[str] = None
    discount_amount: Optional[Decimal] = Field(None, ge=0)


class Transaction(BaseModel):
    """交易模型"""

    id: int
    student_id: int
    created_by_id: int
    coupon_id: Optional[int] = None
    total_value: Decimal
    discount_amount: Optional[Decimal] = None
    payment_type: Optional[str] = None
    installments: Optional[int] = None
    payment_status: PaymentStatus
    payment_date: Optional[datetime] = None
    payment_forecast_date: Optional[datetime] = None
    courses: List[TransactionCourseItem] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def payable_value(self) -> Decimal:
        """应付金额 = 总金额 - 折扣"""
        return max(self.total_value - (self.discount_amount or Decimal('0')), Decimal('0'))


class TransactionFilter(BaseModel):
    """交易列表查询条件"""

    student_id: Optional[int] = None
    created_by_id: Optional[int] = None
    payment_status: Optional[PaymentStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    course_id: Optional[int] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class TransactionPage(BaseModel):
    """交易分页结果"""

    items: List[Transaction]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0
