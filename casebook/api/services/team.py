import uuid
from datetime import datetime
from typing import Callable, List, Optional
from pydantic import ValidationError
from casebook.api.models.user import Role, TeamUser
from casebook.logger.logger import logger
from casebook.storage.kv import KeyValueStorage, TEAM_USERS_KEY
from casebook.utils.common import json_dumps, safe_json_loads

DEFAULT_TEAM = [
    {"id": "1", "username": "admin", "email": "admin@qa.com", "role": "admin", "created_at": datetime(2024, 1, 1)},
    {"id": "2", "username": "tester", "email": "tester@qa.com", "role": "member", "created_at": datetime(2024, 1, 15)},
]

class TeamStore:
    """团队成员存储

    成员的用例在成员删除后保留。密码只用于校验必填，不做持久化。
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], datetime] = datetime.now,
        seed_defaults: bool = True
    ):
        self.storage = storage
        self.clock = clock
        self.users: List[TeamUser] = []
        self._load(seed_defaults)

    def _load(self, seed_defaults: bool) -> None:
        raw = self.storage.get(TEAM_USERS_KEY)
        if raw is None:
            if seed_defaults:
                self.users = [TeamUser(last_login=self.clock(), **item) for item in DEFAULT_TEAM]
                self._save()
                logger.info("已初始化默认团队成员")
            return

        data = safe_json_loads(raw)
        try:
            if not isinstance(data, list):
                raise ValueError("团队数据格式错误")
            self.users = [TeamUser.model_validate(item) for item in data]
        except (ValueError, ValidationError) as e:
            logger.error(f"团队数据损坏，已丢弃: {str(e)}")
            self.storage.remove(TEAM_USERS_KEY)
            self.users = []

    def _save(self) -> None:
        self.storage.set(TEAM_USERS_KEY, json_dumps([u.to_storage() for u in self.users]))

    def get_user(self, id: str) -> Optional[TeamUser]:
        return next((u for u in self.users if u.id == id), None)

    def _validate(self, username: str, email: str, exclude_id: Optional[str] = None) -> None:
        if not (username or "").strip() or not (email or "").strip():
            raise ValueError("All fields are required")
        if any(u.email == email and u.id != exclude_id for u in self.users):
            raise ValueError("Email already exists")

    def add_user(self, username: str, email: str, password: str, role: Role = Role.MEMBER) -> TeamUser:
        """新增团队成员

        Raises:
            ValueError: 字段缺失或邮箱已存在
        """
        if not (password or "").strip():
            raise ValueError("All fields are required")
        self._validate(username, email)

        user = TeamUser(
            id=str(uuid.uuid4()),
            username=username.strip(),
            email=email.strip(),
            role=role,
            is_active=True,
            created_at=self.clock()
        )
        self.users.append(user)
        self._save()
        logger.info(f"新增团队成员: {user.username}")
        return user

    def update_user(self, id: str, username: str, email: str, role: Role) -> Optional[TeamUser]:
        """编辑成员信息，不存在时返回 None"""
        index = next((i for i, u in enumerate(self.users) if u.id == id), None)
        if index is None:
            return None
        self._validate(username, email, exclude_id=id)

        self.users[index] = self.users[index].model_copy(update={
            "username": username.strip(),
            "email": email.strip(),
            "role": role
        })
        self._save()
        logger.info(f"更新团队成员: {self.users[index].username}")
        return self.users[index]

    def toggle_active(self, id: str) -> Optional[TeamUser]:
        """切换启用状态"""
        index = next((i for i, u in enumerate(self.users) if u.id == id), None)
        if index is None:
            return None
        user = self.users[index]
        self.users[index] = user.model_copy(update={"is_active": not user.is_active})
        self._save()
        logger.info(f"团队成员状态变更: {user.username} -> {'启用' if not user.is_active else '停用'}")
        return self.users[index]

    def delete_user(self, id: str) -> bool:
        """删除成员，不存在时返回 False"""
        remaining = [u for u in self.users if u.id != id]
        if len(remaining) == len(self.users):
            return False
        self.users = remaining
        self._save()
        logger.info(f"删除团队成员: {id}")
        return True

    def record_login(self, email: str) -> None:
        """记录成员最近登录时间"""
        for index, user in enumerate(self.users):
            if user.email == email:
                self.users[index] = user.model_copy(update={"last_login": self.clock()})
                self._save()
                return
