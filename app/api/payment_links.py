"""
支付链接与支付状态接口
"""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.dependencies import (
    get_acting_user, require_admin, get_payment_link_service, get_reconciliation_service
)
from app.models.payment_link import (
    PaymentLink, PaymentLinkRequest, ReconciliationSummary, StudentPaymentCheck
)
from app.models.user import ActingUser
from app.services.payment_link_service import PaymentLinkService
from app.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/payment-links", tags=["支付链接"])


class PaymentLinkStatusUpdate(BaseModel):
    status: int = Field(..., description="1待支付 2已支付 3已取消")


@router.post("", response_model=PaymentLink, status_code=201)
async def generate_payment_link(
    request: PaymentLinkRequest,
    acting_user: ActingUser = Depends(get_acting_user),
    service: PaymentLinkService = Depends(get_payment_link_service)
):
    """生成支付链接，已有待支付链接时直接返回"""
    return await service.generate_payment_link(request, acting_user)


@router.get("/students/{student_id}", response_model=List[PaymentLink])
async def list_student_links(
    student_id: int,
    acting_user: ActingUser = Depends(get_acting_user),
    service: PaymentLinkService = Depends(get_payment_link_service)
):
    return await service.list_student_links(student_id)


@router.post("/students/{student_id}/check", response_model=StudentPaymentCheck)
async def check_student_payment(
    student_id: int,
    acting_user: ActingUser = Depends(get_acting_user),
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    """立即向网关查询学员最新支付链接的状态"""
    return await service.check_student_payment(student_id)


@router.post("/reconcile", response_model=ReconciliationSummary)
async def reconcile_pending_links(
    acting_user: ActingUser = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    """手动触发一轮对账"""
    return await service.reconcile_all()


@router.patch("/{link_id}/status", response_model=PaymentLink)
async def update_payment_link_status(
    link_id: int,
    data: PaymentLinkStatusUpdate,
    acting_user: ActingUser = Depends(require_admin),
    service: ReconciliationService = Depends(get_reconciliation_service)
):
    return await service.update_payment_link_status(link_id, data.status)
