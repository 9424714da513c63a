"""
课程及授课形式数据库模型
"""

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Table
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.core.database import Base


# 课程与授课形式多对多关联表
course_to_modality = Table(
    "course_to_modality",
    Base.metadata,
    Column("course_id", Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True),
    Column("course_modality_id", Integer, ForeignKey("course_modalities.id", ondelete="CASCADE"), primary_key=True),
    comment="课程与授课形式关联表"
)


class CourseDB(Base):
    """课程表"""

    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="课程ID")
    code = Column(String(50), nullable=False, unique=True, comment="课程代码")
    name = Column(String(200), nullable=False, comment="课程名称")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    modalities = relationship("CourseModalityDB", secondary=course_to_modality, back_populates="courses")

    __table_args__ = (
        {'comment': '课程表'}
    )


class CourseModalityDB(Base):
    """授课形式表（线上、线下等）"""

    __tablename__ = "course_modalities"

    id = Column(Integer, primary_key=True, autoincrement=True, comment="授课形式ID")
    code = Column(String(50), nullable=False, unique=True, comment="授课形式代码")
    name = Column(String(200), nullable=False, comment="授课形式名称")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), comment="创建时间")
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), comment="更新时间")

    courses = relationship("CourseDB", secondary=course_to_modality, back_populates="modalities")

    __table_args__ = (
        {'comment': '授课形式表'}
    )
