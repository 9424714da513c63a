"""
系统用户数据库模型（管理员、销售、推广员）
"""

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func
from app.core.database import Base


class UserDB(Base):
    """系统用户表"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="用户ID")
    email = Column(String(200), nullable=False, unique=True, index=True, comment="登录邮箱")
    name = Column(String(200), nullable=False, comment="用户姓名")
    role = Column(String(20), nullable=False, default="SELLER", index=True, comment="角色: ADMIN/SELLER/AFFILIATE")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    __table_args__ = (
        {'comment': '系统用户表'}
    )
