"""
学员相关数据模型
"""

import re
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, validator


class StudentCreate(BaseModel):
    """创建学员模型"""

    full_name: str = Field(..., min_length=1, max_length=200, description="姓名")
    cpf: str = Field(..., min_length=11, max_length=14, description="CPF证件号")
    birth_date: Optional[date] = Field(None, description="出生日期")
    ddd: Optional[str] = Field(None, max_length=3, description="电话区号")
    phone: Optional[str] = Field(None, max_length=20, description="电话")
    email: Optional[str] = Field(None, max_length=200, description="邮箱")
    cnh_number: Optional[str] = Field(None, max_length=20, description="驾照号")
    cnh_type: Optional[str] = Field(None, max_length=5, description="驾照类别")
    renach: Optional[str] = Field(None, max_length=20, description="RENACH编号")

    @validator('cpf')
    def validate_cpf(cls, v):
        """CPF需包含11位数字"""
        if len(re.sub(r'\D', '', v)) != 11:
            raise ValueError('CPF必须包含11位数字')
        return v


class Student(BaseModel):
    """学员模型"""

    id: int
    full_name: str
    cpf: str
    birth_date: Optional[date] = None
    ddd: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    cnh_number: Optional[str] = None
    cnh_type: Optional[str] = None
    renach: Optional[str] = None
    user_id: Optional[int] = None
    registration_date: Optional[datetime] = None

    @property
    def cpf_digits(self) -> str:
        """仅保留数字的CPF"""
        return re.sub(r'\D', '', self.cpf)
