from abc import ABC, abstractmethod
from typing import Dict, Optional
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker, Session
from casebook.config.settings import settings
from casebook.db import KeyValue, SessionLocal, init_db
from casebook.logger.logger import logger

# 持久化键名
TEST_CASES_KEY = "testCases"
MODULES_KEY = "modules"
TEAM_USERS_KEY = "teamUsers"
AUTH_TOKEN_KEY = "authToken"
USER_DATA_KEY = "userData"

class KeyValueStorage(ABC):
    """键值存储接口

    字符串键、字符串值，语义与浏览器 localStorage 一致：
    读取不存在的键返回 None，删除不存在的键不报错。
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """读取键值"""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """写入键值"""

    @abstractmethod
    def remove(self, key: str) -> None:
        """删除键值"""

    @abstractmethod
    def clear(self) -> None:
        """清空所有键值"""

class MemoryStorage(KeyValueStorage):
    """内存键值存储，用于测试"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self):
        return list(self._data.keys())

class DatabaseStorage(KeyValueStorage):
    """基于 SQLAlchemy 的键值存储

    每次写入单独提交，两个集合之间不保证事务一致。
    """

    def __init__(self, session_factory: Optional[sessionmaker] = None):
        self._session_factory = session_factory or SessionLocal
        init_db(self._session_factory.kw.get("bind"))

    def _session(self) -> Session:
        return self._session_factory()

    def get(self, key: str) -> Optional[str]:
        with self._session() as session:
            item = session.get(KeyValue, key)
            return item.value if item else None

    def set(self, key: str, value: str) -> None:
        with self._session() as session:
            try:
                item = session.get(KeyValue, key)
                if item is None:
                    session.add(KeyValue(key=key, value=value))
                else:
                    item.value = value
                session.commit()
            except Exception as e:
                session.rollback()
                logger.error(f"写入存储失败: key={key}, error={str(e)}")
                raise

    def remove(self, key: str) -> None:
        with self._session() as session:
            item = session.get(KeyValue, key)
            if item is not None:
                session.delete(item)
                session.commit()

    def clear(self) -> None:
        with self._session() as session:
            for item in session.scalars(select(KeyValue)).all():
                session.delete(item)
            session.commit()

# 全局存储实例
_storage: Optional[KeyValueStorage] = None

def get_storage() -> KeyValueStorage:
    """获取键值存储实例（首次访问时初始化）"""
    global _storage
    if _storage is None:
        backend = settings.storage.STORAGE_BACKEND
        if backend == "memory":
            _storage = MemoryStorage()
        else:
            _storage = DatabaseStorage()
        logger.info(f"键值存储初始化成功: backend={backend}")
    return _storage

def set_storage(storage: Optional[KeyValueStorage]) -> None:
    """替换全局存储实例"""
    global _storage
    _storage = storage
