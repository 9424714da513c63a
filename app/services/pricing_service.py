"""
优惠券定价服务
根据优惠券配置计算一次购买的折扣与佣金
"""

import logging
from typing import List, Optional, Tuple
from decimal import Decimal, ROUND_HALF_UP

from app.core.exceptions import ReasonCode, ValidationError
from app.models.coupon import (
    Coupon, CouponConfiguration, ApplicationMode, PricingContext, PricingResult
)
from app.services.coupon_service import CouponService

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

MATCHED_BY_MODALITY = "modality"
MATCHED_BY_EXACT = "exact"
MATCHED_BY_FALLBACK = "fallback"


def _quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _rule_amount(amount: Decimal, fixed: Optional[Decimal], percent: Optional[Decimal]) -> Decimal:
    """固定金额优先，否则按百分比计算"""
    if fixed is not None:
        return Decimal(fixed)
    if percent is not None:
        return amount * Decimal(percent) / Decimal("100")
    return Decimal("0")


def select_configuration(
    mode: ApplicationMode,
    configurations: List[CouponConfiguration],
    context: PricingContext
) -> Tuple[Optional[CouponConfiguration], Optional[str]]:
    """
    选择适用的配置，返回(配置, 匹配方式)
    GENERAL：第一个授课形式相同的配置
    SPECIFIC：先找课程完全匹配的配置，找不到时退回第一个配置
    """
    if mode == ApplicationMode.GENERAL:
        for config in configurations:
            if config.course_modality_id == context.course_modality_id:
                return config, MATCHED_BY_MODALITY
        return None, None

    for config in configurations:
        if config.course_id == context.course_id:
            return config, MATCHED_BY_EXACT
    if configurations:
        # TODO: 与销售确认未配置的课程是否应套用第一条配置
        return configurations[0], MATCHED_BY_FALLBACK
    return None, None


def price(coupon: Coupon, context: PricingContext) -> PricingResult:
    """计算折扣与佣金，应付金额不会小于0"""
    amount = Decimal(context.amount)
    config, matched_by = select_configuration(coupon.application_mode, coupon.configurations, context)

    if config is None:
        return PricingResult(
            applicable=False,
            original_amount=_quantize(amount),
            final_value=_quantize(amount)
        )

    discount = _quantize(_rule_amount(amount, config.discount_value, config.discount_percent))
    commission = _quantize(_rule_amount(amount, config.commission_value, config.commission_percent))
    final_value = max(amount - discount, Decimal("0"))

    return PricingResult(
        applicable=True,
        matched_by=matched_by,
        configuration_id=config.id,
        original_amount=_quantize(amount),
        discount_amount=discount,
        commission_amount=commission,
        final_value=_quantize(final_value)
    )


class PricingService:
    """定价服务"""

    def __init__(self, coupon_service: CouponService):
        self.coupon_service = coupon_service

    async def price_coupon(
        self,
        identifier: str,
        context: PricingContext,
        strict: bool = False
    ) -> PricingResult:
        """查找并校验优惠券后计算价格；strict为True时不适用会抛出异常"""
        coupon = await self.coupon_service.resolve_and_validate(identifier)
        result = price(coupon, context)

        if result.matched_by == MATCHED_BY_FALLBACK:
            logger.info(f"优惠券 {coupon.code} 未找到课程 {context.course_id} 的配置，使用默认配置")

        if strict and not result.applicable:
            raise ValidationError(
                "优惠券不适用于该课程",
                ReasonCode.COUPON_NOT_APPLICABLE,
                field="coupon_code"
            )
        return result
