"""
交易相关数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class TransactionDB(Base):
    """交易主表（一次购买，可包含多门课程）"""

    __tablename__ = "transactions"

    # 主键和关联信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="交易ID")
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True, comment="学员ID")
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True, comment="创建人ID")
    coupon_id = Column(Integer, ForeignKey("coupons.id"), index=True, comment="使用的优惠券ID")

    # 金额信息
    total_value = Column(Numeric(12, 2), nullable=False, comment="总金额")
    discount_amount = Column(Numeric(12, 2), comment="折扣金额")

    # 支付信息
    payment_type = Column(String(50), comment="支付方式")
    installments = Column(Integer, comment="分期数")
    payment_status = Column(String(20), nullable=False, default="pending", index=True, comment="支付状态")
    payment_date = Column(DateTime(timezone=True), comment="支付时间")
    payment_forecast_date = Column(DateTime(timezone=True), comment="预计支付时间")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    # 关系映射
    student = relationship("StudentDB", back_populates="transactions")
    courses = relationship("TransactionCourseDB", back_populates="transaction", cascade="all, delete-orphan")
    payment_links = relationship("PaymentLinkDB", back_populates="transaction")

    __table_args__ = (
        {'comment': '交易主表'}
    )


class TransactionCourseDB(Base):
    """交易课程明细表"""

    __tablename__ = "transaction_courses"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="明细ID")
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True, comment="交易ID")
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, comment="课程ID")
    course_modality_id = Column(Integer, ForeignKey("course_modalities.id"), nullable=False, comment="授课形式ID")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")

    # 关系映射
    transaction = relationship("TransactionDB", back_populates="courses")

    __table_args__ = (
        UniqueConstraint("transaction_id", "course_id", "course_modality_id", name="uq_transaction_course_modality"),
        {'comment': '交易课程明细表'}
    )
