import uuid
from typing import Dict, List, Optional, Protocol
from pydantic import ValidationError
from casebook.api.models.case import TestCase
from casebook.api.models.user import Role, User
from casebook.logger.logger import logger
from casebook.storage.kv import AUTH_TOKEN_KEY, USER_DATA_KEY, KeyValueStorage
from casebook.utils.common import json_dumps, safe_json_loads

class CredentialVerifier(Protocol):
    """凭据校验接口"""

    def verify(self, email: str, password: str) -> Optional[User]:
        """校验邮箱和密码，成功返回用户，失败返回 None"""
        ...

    def is_known_email(self, email: str) -> bool:
        """邮箱是否已被占用"""
        ...

class DemoCredentialVerifier:
    """内置演示账号的凭据校验"""

    DEMO_ACCOUNTS: List[Dict[str, str]] = [
        {"id": "1", "username": "admin", "email": "admin@qa.com", "password": "admin123", "role": "admin"},
        {"id": "2", "username": "tester", "email": "tester@qa.com", "password": "test123", "role": "member"},
    ]

    def __init__(self, accounts: Optional[List[Dict[str, str]]] = None):
        self.accounts = accounts if accounts is not None else self.DEMO_ACCOUNTS

    def verify(self, email: str, password: str) -> Optional[User]:
        for account in self.accounts:
            if account["email"] == email and account["password"] == password:
                return User(**{k: v for k, v in account.items() if k != "password"})
        return None

    def is_known_email(self, email: str) -> bool:
        return any(account["email"] == email for account in self.accounts)

class SessionStore:
    """会话存储

    保存当前登录用户并持久化，进程内同一时刻至多一个已登录用户。
    状态: 未登录 -> (login/register) -> 已登录 -> (logout) -> 未登录
    """

    def __init__(self, storage: KeyValueStorage, verifier: Optional[CredentialVerifier] = None):
        self.storage = storage
        self.verifier = verifier or DemoCredentialVerifier()
        self.current_user: Optional[User] = None
        self._restore()

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def token(self) -> Optional[str]:
        return self.storage.get(AUTH_TOKEN_KEY)

    def _restore(self) -> None:
        """恢复之前持久化的用户，数据损坏时清除并以未登录状态启动"""
        token = self.storage.get(AUTH_TOKEN_KEY)
        user_data = self.storage.get(USER_DATA_KEY)
        if not token or not user_data:
            return

        data = safe_json_loads(user_data)
        try:
            if not isinstance(data, dict):
                raise ValueError("用户数据格式错误")
            self.current_user = User.model_validate(data)
            logger.info(f"已恢复登录用户: {self.current_user.username}")
        except (ValueError, ValidationError) as e:
            logger.error(f"恢复登录用户失败，已清除: {str(e)}")
            self._clear()

    def _persist(self, user: User) -> None:
        self.current_user = user
        self.storage.set(AUTH_TOKEN_KEY, f"demo-token-{user.id}")
        self.storage.set(USER_DATA_KEY, json_dumps(user.to_storage()))

    def _clear(self) -> None:
        self.current_user = None
        self.storage.remove(AUTH_TOKEN_KEY)
        self.storage.remove(USER_DATA_KEY)

    def login(self, email: str, password: str) -> bool:
        """登录，凭据错误返回 False"""
        logger.info(f"登录尝试: {email}")
        user = self.verifier.verify(email, password)
        if user is None:
            logger.warning(f"登录失败: {email}")
            return False
        self._persist(user)
        logger.info(f"登录成功: {user.username} ({user.role.value})")
        return True

    def logout(self) -> None:
        """退出登录并清除持久化状态"""
        if self.current_user:
            logger.info(f"退出登录: {self.current_user.username}")
        self._clear()

    def register(self, username: str, email: str, password: str, role: Optional[Role] = None) -> bool:
        """注册并登录新用户

        邮箱已被占用时返回 False。密码不做持久化。
        """
        logger.info(f"注册尝试: {username} <{email}>")
        if self.verifier.is_known_email(email):
            logger.warning(f"注册失败，邮箱已存在: {email}")
            return False

        user = User(
            id=str(uuid.uuid4()),
            username=username,
            email=email,
            role=role or Role.MEMBER
        )
        self._persist(user)
        logger.info(f"注册成功: {user.username}")
        return True

# ----------------------------------------------------------------------
# 权限判断
# ----------------------------------------------------------------------

def can_edit_test_case(user: Optional[User], test_case: TestCase) -> bool:
    """管理员或创建人可以编辑、删除用例"""
    if user is None:
        return False
    return user.is_admin or test_case.created_by == user.username

def can_manage_modules(user: Optional[User]) -> bool:
    """只有管理员可以管理模块"""
    return user is not None and user.is_admin

def can_manage_team(user: Optional[User]) -> bool:
    """只有管理员可以管理团队"""
    return user is not None and user.is_admin
