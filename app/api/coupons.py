"""
优惠券管理接口
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.dependencies import (
    get_acting_user, require_admin, get_coupon_service, get_pricing_service
)
from app.models.coupon import (
    Coupon, CouponCreate, CouponConfiguration, ApplicationMode, PricingContext, PricingResult
)
from app.models.user import ActingUser
from app.services.coupon_service import CouponService
from app.services.pricing_service import PricingService

router = APIRouter(prefix="/coupons", tags=["优惠券管理"])


class ApplicationModeUpdate(BaseModel):
    application_mode: ApplicationMode


class PriceRequest(PricingContext):
    """试算请求"""

    coupon: str


@router.get("", response_model=List[Coupon])
async def list_coupons(
    active: Optional[bool] = Query(None, description="按启用状态过滤"),
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.list_coupons(active)


@router.post("", response_model=Coupon, status_code=201)
async def create_coupon(
    data: CouponCreate,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    """创建优惠券，代码前缀取自所属用户的名字"""
    return await service.create_coupon(data)


@router.post("/price", response_model=PricingResult)
async def price_coupon(
    request: PriceRequest,
    acting_user: ActingUser = Depends(get_acting_user),
    service: PricingService = Depends(get_pricing_service)
):
    """按优惠券代码或名称试算折扣和佣金"""
    context = PricingContext(
        course_id=request.course_id,
        course_modality_id=request.course_modality_id,
        amount=request.amount
    )
    return await service.price_coupon(request.coupon, context)


@router.get("/me", response_model=Optional[Coupon])
async def get_my_coupon(
    acting_user: ActingUser = Depends(get_acting_user),
    service: CouponService = Depends(get_coupon_service)
):
    """当前用户启用中的优惠券"""
    return await service.get_active_user_coupon(acting_user.user_id)


@router.get("/{coupon_id}", response_model=Coupon)
async def get_coupon(
    coupon_id: int,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.get_coupon(coupon_id)


@router.patch("/{coupon_id}/application-mode", response_model=Coupon)
async def update_application_mode(
    coupon_id: int,
    data: ApplicationModeUpdate,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.update_application_mode(coupon_id, data.application_mode)


@router.post("/{coupon_id}/toggle", response_model=Coupon)
async def toggle_coupon(
    coupon_id: int,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.toggle_active(coupon_id)


@router.get("/{coupon_id}/configurations", response_model=List[CouponConfiguration])
async def list_configurations(
    coupon_id: int,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.list_configurations(coupon_id)


@router.put("/{coupon_id}/configurations/modalities/{course_modality_id}", response_model=CouponConfiguration)
async def upsert_general_configuration(
    coupon_id: int,
    course_modality_id: int,
    config: CouponConfiguration,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.upsert_general_configuration(coupon_id, course_modality_id, config)


@router.put("/{coupon_id}/configurations/courses/{course_id}", response_model=CouponConfiguration)
async def upsert_specific_configuration(
    coupon_id: int,
    course_id: int,
    config: CouponConfiguration,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    return await service.upsert_specific_configuration(
        coupon_id, course_id, config, course_modality_id=config.course_modality_id
    )


@router.delete("/{coupon_id}/configurations/{configuration_id}", status_code=204)
async def delete_configuration(
    coupon_id: int,
    configuration_id: int,
    acting_user: ActingUser = Depends(require_admin),
    service: CouponService = Depends(get_coupon_service)
):
    await service.delete_configuration(coupon_id, configuration_id)
