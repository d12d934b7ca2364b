from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import Field
from .base import CamelModel

class Role(str, Enum):
    """用户角色"""
    ADMIN = "admin"
    MEMBER = "member"

class User(CamelModel):
    """会话用户"""
    id: str
    username: str
    email: str
    role: Role = Role.MEMBER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

class TeamUser(CamelModel):
    """团队成员"""
    id: str
    username: str
    email: str
    role: Role = Role.MEMBER
    is_active: bool = True
    created_at: datetime
    last_login: Optional[datetime] = None

class LoginRequest(CamelModel):
    """登录请求"""
    email: str
    password: str

class RegisterRequest(CamelModel):
    """注册请求"""
    username: str = Field(min_length=1)
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Optional[Role] = None

class TeamUserCreate(CamelModel):
    """新增团队成员"""
    username: str
    email: str
    password: str
    role: Role = Role.MEMBER

class TeamUserUpdate(CamelModel):
    """编辑团队成员"""
    username: str
    email: str
    role: Role = Role.MEMBER
