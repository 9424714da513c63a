"""
优惠券相关数据模型
"""

from decimal import Decimal
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field, validator
from enum import Enum


class CouponUserType(str, Enum):
    """优惠券归属用户类型"""
    AFFILIATE = "AFFILIATE"  # 推广员
    SELLER = "SELLER"  # 销售
    NONE = "NONE"  # 通用券


class ApplicationMode(str, Enum):
    """优惠券应用模式"""
    GENERAL = "GENERAL"  # 按授课形式
    SPECIFIC = "SPECIFIC"  # 按具体课程


class CouponValidationStatus(str, Enum):
    """优惠券校验结果"""
    VALID = "valid"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    USAGE_LIMIT_EXCEEDED = "usage_limit_exceeded"


class CouponConfiguration(BaseModel):
    """优惠券折扣/佣金配置"""

    id: Optional[int] = Field(None, description="配置ID")
    coupon_id: Optional[int] = Field(None, description="优惠券ID")
    course_modality_id: Optional[int] = Field(None, description="授课形式ID（GENERAL模式）")
    course_id: Optional[int] = Field(None, description="课程ID（SPECIFIC模式）")
    discount_value: Optional[Decimal] = Field(None, ge=0, description="固定折扣金额")
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100, description="折扣百分比")
    commission_value: Optional[Decimal] = Field(None, ge=0, description="固定佣金金额")
    commission_percent: Optional[Decimal] = Field(None, ge=0, le=100, description="佣金百分比")


class Coupon(BaseModel):
    """优惠券基础模型"""

    id: int = Field(..., description="优惠券ID")
    code: str = Field(..., min_length=1, max_length=50, description="优惠券代码")
    custom_name: Optional[str] = Field(None, description="自定义展示名称")
    user_id: Optional[int] = Field(None, description="所属用户ID")
    user_type: CouponUserType = Field(default=CouponUserType.NONE, description="所属用户类型")
    application_mode: ApplicationMode = Field(default=ApplicationMode.GENERAL, description="应用模式")
    active: bool = Field(default=True, description="是否启用")
    expiration_date: Optional[datetime] = Field(None, description="过期时间")
    usage_limit: Optional[int] = Field(None, ge=1, description="总使用次数限制")
    usage_count: int = Field(default=0, ge=0, description="已使用次数")
    configurations: List[CouponConfiguration] = Field(default_factory=list, description="折扣配置")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validation_status(self, now: Optional[datetime] = None) -> CouponValidationStatus:
        """检查优惠券当前是否可用"""
        if not self.active:
            return CouponValidationStatus.INACTIVE

        if self.expiration_date is not None:
            expiration = self.expiration_date
            if now is None:
                now = datetime.now(expiration.tzinfo) if expiration.tzinfo else datetime.now()
            elif now.tzinfo is None and expiration.tzinfo is not None:
                now = now.replace(tzinfo=timezone.utc)
            elif now.tzinfo is not None and expiration.tzinfo is None:
                now = now.astimezone(timezone.utc).replace(tzinfo=None)
            if expiration <= now:
                return CouponValidationStatus.EXPIRED

        if self.usage_limit is not None and self.usage_count >= self.usage_limit:
            return CouponValidationStatus.USAGE_LIMIT_EXCEEDED

        return CouponValidationStatus.VALID

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return self.validation_status(now) == CouponValidationStatus.VALID


class CouponCreate(BaseModel):
    """创建优惠券模型"""

    user_id: Optional[int] = Field(None, description="所属用户ID，为空时创建通用券")
    user_type: CouponUserType = Field(default=CouponUserType.NONE)
    custom_name: Optional[str] = Field(None, max_length=100)
    expiration_date: Optional[datetime] = None
    usage_limit: Optional[int] = Field(None, ge=1)

    @validator('custom_name')
    def strip_custom_name(cls, v):
        """去除首尾空白，空字符串视为未设置"""
        if v is None:
            return v
        v = v.strip()
        return v or None


class PricingContext(BaseModel):
    """定价上下文：一次购买中的课程与金额"""

    course_id: int = Field(..., description="课程ID")
    course_modality_id: int = Field(..., description="授课形式ID")
    amount: Decimal = Field(..., ge=0, description="购买金额")


class PricingResult(BaseModel):
    """优惠券定价结果"""

    applicable: bool = Field(..., description="优惠券是否适用于本次购买")
    matched_by: Optional[str] = Field(None, description="配置匹配方式: modality/exact/fallback")
    configuration_id: Optional[int] = Field(None, description="命中的配置ID")
    original_amount: Decimal = Field(..., ge=0, description="原始金额")
    discount_amount: Decimal = Field(default=Decimal('0'), ge=0, description="折扣金额")
    commission_amount: Decimal = Field(default=Decimal('0'), ge=0, description="佣金金额")
    final_value: Decimal = Field(..., ge=0, description="应付金额")
