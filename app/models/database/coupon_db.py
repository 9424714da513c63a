"""
优惠券数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class CouponDB(Base):
    """优惠券数据库表"""

    __tablename__ = "coupons"

    # 主键和基本信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="优惠券ID")
    code = Column(String(50), nullable=False, unique=True, index=True, comment="优惠券代码（系统生成，不可修改）")
    custom_name = Column(String(100), index=True, comment="自定义展示名称")
    user_id = Column(Integer, ForeignKey("users.id"), index=True, comment="所属用户ID")
    user_type = Column(String(20), nullable=False, default="NONE", comment="所属用户类型: AFFILIATE/SELLER/NONE")

    # 状态与应用模式
    application_mode = Column(String(20), nullable=False, default="GENERAL", comment="应用模式: GENERAL/SPECIFIC")
    active = Column(Boolean, nullable=False, default=True, index=True, comment="是否启用")

    # 使用限制
    expiration_date = Column(DateTime(timezone=True), comment="过期时间")
    usage_limit = Column(Integer, comment="总使用次数限制")
    usage_count = Column(Integer, nullable=False, default=0, comment="已使用次数")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    # 关系映射
    configurations = relationship("CouponConfigurationDB", back_populates="coupon", cascade="all, delete-orphan")

    __table_args__ = (
        {'comment': '优惠券信息表'}
    )


class CouponConfigurationDB(Base):
    """优惠券折扣/佣金配置表"""

    __tablename__ = "coupon_configurations"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="配置ID")
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True, comment="优惠券ID")

    # GENERAL模式按授课形式配置，SPECIFIC模式按课程配置
    course_modality_id = Column(Integer, ForeignKey("course_modalities.id"), comment="授课形式ID")
    course_id = Column(Integer, ForeignKey("courses.id"), comment="课程ID")

    # 折扣与佣金（固定金额与百分比二选一）
    discount_value = Column(Numeric(10, 2), comment="固定折扣金额")
    discount_percent = Column(Numeric(5, 2), comment="折扣百分比")
    commission_value = Column(Numeric(10, 2), comment="固定佣金金额")
    commission_percent = Column(Numeric(5, 2), comment="佣金百分比")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    coupon = relationship("CouponDB", back_populates="configurations")

    __table_args__ = (
        {'comment': '优惠券配置表'}
    )
