import os
import sys
from datetime import datetime, timedelta
from pathlib import Path

# 添加项目根目录到Python路径
project_root = str(Path(__file__).parent.parent)
sys.path.insert(0, project_root)

# 设置测试环境变量（必须在导入项目模块之前）
os.environ["STORAGE_BACKEND"] = "memory"  # 使用内存存储
os.environ["OBJECT_STORAGE_ENABLED"] = "false"  # 禁用对象存储
os.environ["DB_URL"] = "sqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest
from fastapi.testclient import TestClient
from casebook.api import deps
from casebook.api.services.auth import SessionStore
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.team import TeamStore
from casebook.main import app
from casebook.storage.kv import MemoryStorage
from casebook.storage.storage import AttachmentStorage

class FakeClock:
    """可控时钟：每次调用前进 step，step 为 0 时时间冻结"""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, 0), step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

@pytest.fixture
def storage():
    """内存键值存储"""
    return MemoryStorage()

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def catalog(storage, clock):
    """不含默认模块的用例目录"""
    return CatalogStore(storage, clock=clock, seed_defaults=False)

@pytest.fixture
def seeded_catalog(storage, clock):
    """含两个模块和两个用例的用例目录"""
    store = CatalogStore(storage, clock=clock, seed_defaults=False)
    store.add_module({"name": "Auth", "description": "Login"})
    store.add_module({"name": "UI"})
    store.add_test_case({
        "testCaseId": "TC001",
        "title": "Login with valid credentials",
        "module": "Auth",
        "steps": "Open login page",
        "expectedResult": "Dashboard is shown",
        "priority": "High",
        "status": "Passed",
        "createdBy": "admin",
    })
    store.add_test_case({
        "testCaseId": "TC002",
        "title": "Button colors",
        "module": "UI",
        "steps": "Open settings",
        "expectedResult": "Primary button is blue",
        "priority": "Low",
        "status": "Failed",
        "createdBy": "tester",
    })
    return store

@pytest.fixture
def session(storage):
    return SessionStore(storage)

@pytest.fixture
def team(storage, clock):
    return TeamStore(storage, clock=clock)

@pytest.fixture
def client(seeded_catalog, session, team):
    """替换依赖后的测试客户端（未登录）"""
    app.dependency_overrides[deps.get_catalog] = lambda: seeded_catalog
    app.dependency_overrides[deps.get_session] = lambda: session
    app.dependency_overrides[deps.get_team] = lambda: team
    app.dependency_overrides[deps.get_attachments] = lambda: AttachmentStorage()
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def admin_client(client, session):
    """管理员登录后的测试客户端"""
    assert session.login("admin@qa.com", "admin123")
    return client

@pytest.fixture
def member_client(client, session):
    """普通成员登录后的测试客户端"""
    assert session.login("tester@qa.com", "test123")
    return client
