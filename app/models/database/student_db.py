"""
学员数据库模型
"""

from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


class StudentDB(Base):
    """学员信息表"""

    __tablename__ = "students"

    # 主键和身份信息
    id = Column(Integer, primary_key=True, autoincrement=True, comment="学员ID")
    full_name = Column(String(200), nullable=False, comment="姓名")
    cpf = Column(String(14), nullable=False, index=True, comment="CPF证件号")
    birth_date = Column(Date, comment="出生日期")

    # 联系方式
    ddd = Column(String(3), comment="电话区号")
    phone = Column(String(20), comment="电话")
    email = Column(String(200), comment="邮箱")

    # 驾照信息
    cnh_number = Column(String(20), comment="驾照号")
    cnh_type = Column(String(5), comment="驾照类别")
    renach = Column(String(20), comment="RENACH编号")

    # 录入人
    user_id = Column(Integer, ForeignKey("users.id"), index=True, comment="录入用户ID")
    registration_date = Column(DateTime(timezone=True), server_default=func.now(), comment="登记时间")

    # 时间戳
    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    # 关系映射
    transactions = relationship("TransactionDB", back_populates="student")

    __table_args__ = (
        {'comment': '学员信息表'}
    )
