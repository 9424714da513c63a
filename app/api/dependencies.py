"""
API依赖注入
认证由上游网关完成，这里只从请求头读取操作用户
"""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db_session
from app.integrations.yapay_client import YapayClient, get_yapay_client
from app.models.user import ActingUser, UserRole
from app.repositories.coupon_repository import CouponRepository
from app.repositories.course_repository import CourseRepository
from app.repositories.payment_link_repository import PaymentLinkRepository
from app.repositories.student_repository import StudentRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository
from app.services.coupon_service import CouponService
from app.services.payment_link_service import PaymentLinkService
from app.services.pricing_service import PricingService
from app.services.reconciliation_service import ReconciliationService
from app.services.transaction_service import TransactionService


def get_acting_user(
    x_user_id: int = Header(..., description="操作用户ID"),
    x_user_role: str = Header(..., description="操作用户角色")
) -> ActingUser:
    try:
        role = UserRole(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=401, detail="无效的用户角色")
    return ActingUser(user_id=x_user_id, role=role)


def require_admin(acting_user: ActingUser = Depends(get_acting_user)) -> ActingUser:
    if not acting_user.is_admin:
        raise HTTPException(status_code=403, detail="仅管理员可执行此操作")
    return acting_user


def get_provider() -> YapayClient:
    return get_yapay_client()


def get_coupon_service(session: AsyncSession = Depends(get_db_session)) -> CouponService:
    return CouponService(CouponRepository(session), UserRepository(session))


def get_pricing_service(coupon_service: CouponService = Depends(get_coupon_service)) -> PricingService:
    return PricingService(coupon_service)


def get_transaction_service(session: AsyncSession = Depends(get_db_session)) -> TransactionService:
    coupon_repo = CouponRepository(session)
    return TransactionService(
        transaction_repo=TransactionRepository(session),
        student_repo=StudentRepository(session),
        coupon_repo=coupon_repo,
        payment_link_repo=PaymentLinkRepository(session),
        coupon_service=CouponService(coupon_repo)
    )


def get_payment_link_service(
    session: AsyncSession = Depends(get_db_session),
    provider: YapayClient = Depends(get_provider)
) -> PaymentLinkService:
    return PaymentLinkService(
        payment_link_repo=PaymentLinkRepository(session),
        transaction_repo=TransactionRepository(session),
        student_repo=StudentRepository(session),
        course_repo=CourseRepository(session),
        provider=provider
    )


def get_reconciliation_service(
    session: AsyncSession = Depends(get_db_session),
    provider: YapayClient = Depends(get_provider)
) -> ReconciliationService:
    return ReconciliationService(
        payment_link_repo=PaymentLinkRepository(session),
        transaction_repo=TransactionRepository(session),
        provider=provider
    )
