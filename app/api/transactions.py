"""
交易管理接口
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.dependencies import get_acting_user, get_transaction_service
from app.models.student import StudentCreate
from app.models.transaction import (
    Transaction, TransactionCreate, TransactionUpdate, TransactionPage, PaymentStatus
)
from app.models.user import ActingUser
from app.services.transaction_service import TransactionService, build_transaction_filter

router = APIRouter(prefix="/transactions", tags=["交易管理"])


class StudentWithTransactionRequest(BaseModel):
    """新学员及首笔交易"""

    student: StudentCreate
    transaction: TransactionCreate


@router.get("", response_model=TransactionPage)
async def list_transactions(
    student_id: Optional[int] = None,
    user_id: Optional[int] = Query(None, description="创建人ID，仅管理员可用"),
    payment_status: Optional[PaymentStatus] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    course_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    """分页查询交易，非管理员只能看到自己创建的交易"""
    filters = build_transaction_filter(
        acting_user,
        student_id=student_id,
        user_id=user_id,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
        course_id=course_id,
        page=page,
        limit=limit
    )
    return await service.list_transactions(filters)


@router.post("", response_model=Transaction, status_code=201)
async def create_transaction(
    data: TransactionCreate,
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    return await service.create_transaction(data, acting_user)


@router.post("/with-student", response_model=Transaction, status_code=201)
async def create_student_with_transaction(
    request: StudentWithTransactionRequest,
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    """同时创建学员和首笔交易"""
    return await service.create_student_with_transaction(request.student, request.transaction, acting_user)


@router.post("/students/{student_id}/courses", response_model=Transaction, status_code=201)
async def add_courses(
    student_id: int,
    data: TransactionCreate,
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    """为已有学员追加课程"""
    return await service.add_courses(student_id, data, acting_user)


@router.get("/{transaction_id}", response_model=Transaction)
async def get_transaction(
    transaction_id: int,
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    return await service.get_transaction(transaction_id, acting_user)


@router.patch("/{transaction_id}", response_model=Transaction)
async def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    return await service.update_transaction(transaction_id, data, acting_user)


@router.delete("/{transaction_id}", status_code=204)
async def delete_transaction(
    transaction_id: int,
    acting_user: ActingUser = Depends(get_acting_user),
    service: TransactionService = Depends(get_transaction_service)
):
    await service.delete_transaction(transaction_id, acting_user)
