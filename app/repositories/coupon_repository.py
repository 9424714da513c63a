"""
优惠券数据库操作层
"""

from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from sqlalchemy import select, update, delete, and_, or_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import unit_of_work
from app.models.coupon import Coupon, CouponConfiguration
from app.models.database.coupon_db import CouponDB, CouponConfigurationDB


class CouponRepository:
    """优惠券数据库操作类"""

    def __init__(self, db: AsyncSession):
        self.db = db

    def atomic(self):
        """开启原子操作单元"""
        return unit_of_work(self.db)

    async def get_by_id(self, coupon_id: int) -> Optional[CouponDB]:
        """根据ID获取优惠券（包含配置）"""
        result = await self.db.execute(
            select(CouponDB)
            .options(selectinload(CouponDB.configurations))
            .where(CouponDB.id == coupon_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_code(self, code: str) -> Optional[CouponDB]:
        """根据优惠券代码精确查找"""
        result = await self.db.execute(
            select(CouponDB)
            .options(selectinload(CouponDB.configurations))
            .where(CouponDB.code == code)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_active_by_custom_name(self, name: str) -> List[CouponDB]:
        """按展示名称查找启用中的优惠券（不区分大小写）"""
        result = await self.db.execute(
            select(CouponDB)
            .options(selectinload(CouponDB.configurations))
            .where(
                and_(
                    func.lower(CouponDB.custom_name) == name.lower(),
                    CouponDB.active.is_(True)
                )
            )
            .order_by(CouponDB.id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def get_active_by_user(self, user_id: int) -> Optional[CouponDB]:
        """获取用户当前启用的优惠券"""
        result = await self.db.execute(
            select(CouponDB).where(
                and_(CouponDB.user_id == user_id, CouponDB.active.is_(True))
            )
        )
        return result.scalars().first()

    async def list_coupons(self, active: Optional[bool] = None) -> List[CouponDB]:
        """获取优惠券列表"""
        query = select(CouponDB).options(selectinload(CouponDB.configurations))
        if active is not None:
            query = query.where(CouponDB.active.is_(active))
        result = await self.db.execute(query.order_by(CouponDB.id))
        return result.scalars().all()

    async def code_exists(self, code: str) -> bool:
        """检查优惠券代码是否已被占用"""
        result = await self.db.execute(
            select(func.count(CouponDB.id)).where(CouponDB.code == code)
        )
        return (result.scalar() or 0) > 0

    async def create_coupon(
        self,
        code: str,
        user_id: Optional[int],
        user_type: str,
        custom_name: Optional[str] = None,
        expiration_date: Optional[datetime] = None,
        usage_limit: Optional[int] = None
    ) -> CouponDB:
        """创建优惠券，新券默认GENERAL模式"""
        db_coupon = CouponDB(
            code=code,
            user_id=user_id,
            user_type=user_type,
            custom_name=custom_name,
            expiration_date=expiration_date,
            usage_limit=usage_limit,
            usage_count=0,
            active=True,
            application_mode="GENERAL"
        )
        self.db.add(db_coupon)
        await self.db.flush()
        return db_coupon

    async def increment_usage(self, coupon_id: int) -> bool:
        """原子递增使用次数，已达上限时不更新"""
        result = await self.db.execute(
            update(CouponDB)
            .where(
                and_(
                    CouponDB.id == coupon_id,
                    or_(
                        CouponDB.usage_limit.is_(None),
                        CouponDB.usage_count < CouponDB.usage_limit
                    )
                )
            )
            .values(usage_count=CouponDB.usage_count + 1, updated_at=func.now())
        )
        return result.rowcount > 0

    async def decrement_usage(self, coupon_id: int) -> bool:
        """原子递减使用次数，不会减到负数"""
        result = await self.db.execute(
            update(CouponDB)
            .where(and_(CouponDB.id == coupon_id, CouponDB.usage_count > 0))
            .values(usage_count=CouponDB.usage_count - 1, updated_at=func.now())
        )
        return result.rowcount > 0

    async def update_coupon(self, coupon_id: int, **values) -> bool:
        """更新优惠券字段（应用模式、启用状态等）"""
        values["updated_at"] = func.now()
        result = await self.db.execute(
            update(CouponDB).where(CouponDB.id == coupon_id).values(**values)
        )
        return result.rowcount > 0

    async def get_configurations(self, coupon_id: int) -> List[CouponConfigurationDB]:
        """获取优惠券的全部配置"""
        result = await self.db.execute(
            select(CouponConfigurationDB)
            .where(CouponConfigurationDB.coupon_id == coupon_id)
            .order_by(CouponConfigurationDB.id)
        )
        return result.scalars().all()

    async def get_configuration(
        self,
        coupon_id: int,
        course_modality_id: Optional[int] = None,
        course_id: Optional[int] = None
    ) -> Optional[CouponConfigurationDB]:
        """按授课形式或课程查找配置"""
        conditions = [CouponConfigurationDB.coupon_id == coupon_id]
        if course_id is not None:
            conditions.append(CouponConfigurationDB.course_id == course_id)
        else:
            conditions.append(CouponConfigurationDB.course_modality_id == course_modality_id)
            conditions.append(CouponConfigurationDB.course_id.is_(None))

        result = await self.db.execute(
            select(CouponConfigurationDB).where(and_(*conditions))
        )
        return result.scalars().first()

    async def save_configuration(
        self,
        coupon_id: int,
        course_modality_id: Optional[int],
        course_id: Optional[int],
        discount_value: Optional[Decimal],
        discount_percent: Optional[Decimal],
        commission_value: Optional[Decimal],
        commission_percent: Optional[Decimal]
    ) -> CouponConfigurationDB:
        """新增或覆盖配置"""
        db_config = await self.get_configuration(coupon_id, course_modality_id, course_id)
        if db_config is None:
            db_config = CouponConfigurationDB(
                coupon_id=coupon_id,
                course_modality_id=course_modality_id,
                course_id=course_id
            )
            self.db.add(db_config)

        db_config.discount_value = discount_value
        db_config.discount_percent = discount_percent
        db_config.commission_value = commission_value
        db_config.commission_percent = commission_percent
        await self.db.flush()
        return db_config

    async def delete_configuration(self, coupon_id: int, configuration_id: int) -> bool:
        """删除配置"""
        result = await self.db.execute(
            delete(CouponConfigurationDB).where(
                and_(
                    CouponConfigurationDB.id == configuration_id,
                    CouponConfigurationDB.coupon_id == coupon_id
                )
            )
        )
        return result.rowcount > 0

    def configuration_to_model(self, db_config: CouponConfigurationDB) -> CouponConfiguration:
        """配置转换为Pydantic模型"""
        return CouponConfiguration(
            id=db_config.id,
            coupon_id=db_config.coupon_id,
            course_modality_id=db_config.course_modality_id,
            course_id=db_config.course_id,
            discount_value=db_config.discount_value,
            discount_percent=db_config.discount_percent,
            commission_value=db_config.commission_value,
            commission_percent=db_config.commission_percent
        )

    def to_model(self, db_coupon: CouponDB, include_configurations: bool = True) -> Coupon:
        """转换为Pydantic模型"""
        configurations = []
        if include_configurations and "configurations" in db_coupon.__dict__:
            configurations = [self.configuration_to_model(c) for c in db_coupon.configurations]

        return Coupon(
            id=db_coupon.id,
            code=db_coupon.code,
            custom_name=db_coupon.custom_name,
            user_id=db_coupon.user_id,
            user_type=db_coupon.user_type or "NONE",
            application_mode=db_coupon.application_mode or "GENERAL",
            active=bool(db_coupon.active),
            expiration_date=db_coupon.expiration_date,
            usage_limit=db_coupon.usage_limit,
            usage_count=db_coupon.usage_count or 0,
            configurations=configurations,
            created_at=db_coupon.created_at,
            updated_at=db_coupon.updated_at
        )
