"""
操作用户相关模型
"""

from enum import Enum
from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """用户角色枚举"""
    ADMIN = "ADMIN"
    SELLER = "SELLER"
    AFFILIATE = "AFFILIATE"


class ActingUser(BaseModel):
    """发起操作的用户（已由HTTP层完成认证）"""

    user_id: int = Field(..., description="用户ID")
    role: UserRole = Field(..., description="用户角色")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def can_access(self, owner_id: int) -> bool:
        """管理员或记录创建人才可访问"""
        return self.is_admin or self.user_id == owner_id
