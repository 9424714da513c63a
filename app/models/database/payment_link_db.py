"""
支付链接数据库模型
"""

from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class PaymentLinkDB(Base):
    """支付网关收款链接表"""

    __tablename__ = "payment_links"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="链接ID")
    provider_id = Column(Integer, comment="支付网关侧ID")
    order_number = Column(String(64), nullable=False, unique=True, index=True, comment="订单号（CPF+时间戳，网关幂等键）")
    code = Column(String(50), comment="商品代码")
    value = Column(Numeric(12, 2), nullable=False, comment="收款金额")
    description = Column(String(500), comment="收款描述")
    max_split_transaction = Column(Integer, comment="最大分期数")
    available_payment_methods = Column(String(50), comment="可用支付方式")
    payment_link = Column(String(500), nullable=False, comment="支付链接URL")
    status = Column(Integer, nullable=False, default=1, index=True, comment="状态: 1待支付 2已支付 3已取消")

    # 关联信息
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True, comment="学员ID")
    transaction_id = Column(Integer, ForeignKey("transactions.id"), index=True, comment="交易ID")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    transaction = relationship("TransactionDB", back_populates="payment_links")

    __table_args__ = (
        {'comment': '支付链接表'}
    )
