import json
from datetime import datetime
import pytest
from casebook.api.models.case import TestCase
from casebook.api.models.user import Role, User
from casebook.api.services.auth import (
    DemoCredentialVerifier, SessionStore, can_edit_test_case, can_manage_modules, can_manage_team
)
from casebook.storage.kv import AUTH_TOKEN_KEY, USER_DATA_KEY, MemoryStorage

def test_starts_unauthenticated(session: SessionStore):
    assert session.current_user is None
    assert not session.is_authenticated
    assert session.token is None

def test_admin_login(session: SessionStore, storage: MemoryStorage):
    """测试管理员登录并持久化"""
    assert session.login("admin@qa.com", "admin123") is True

    assert session.is_authenticated
    assert session.current_user.role == Role.ADMIN
    assert session.current_user.username == "admin"
    assert storage.get(AUTH_TOKEN_KEY) == "demo-token-1"
    saved = json.loads(storage.get(USER_DATA_KEY))
    assert saved == {"id": "1", "username": "admin", "email": "admin@qa.com", "role": "admin"}

@pytest.mark.parametrize("email,password", [
    ("admin@qa.com", "wrong"),
    ("nobody@qa.com", "admin123"),
    ("", ""),
])
def test_login_with_bad_credentials(session: SessionStore, storage: MemoryStorage, email, password):
    """测试凭据错误时保持未登录"""
    assert session.login(email, password) is False
    assert not session.is_authenticated
    assert storage.get(USER_DATA_KEY) is None

def test_failed_login_keeps_existing_user(session: SessionStore):
    """测试登录失败不影响已登录用户"""
    session.login("tester@qa.com", "test123")
    assert session.login("admin@qa.com", "nope") is False
    assert session.current_user.username == "tester"

def test_logout_clears_state(session: SessionStore, storage: MemoryStorage):
    """测试退出登录清除持久化状态"""
    session.login("tester@qa.com", "test123")
    session.logout()

    assert not session.is_authenticated
    assert storage.get(AUTH_TOKEN_KEY) is None
    assert storage.get(USER_DATA_KEY) is None
    session.logout()  # 重复退出不报错

def test_register_logs_in_new_member(session: SessionStore, storage: MemoryStorage):
    """测试注册新用户"""
    assert session.register("alice", "alice@qa.com", "secret") is True

    user = session.current_user
    assert user.username == "alice"
    assert user.role == Role.MEMBER
    assert storage.get(AUTH_TOKEN_KEY) == f"demo-token-{user.id}"
    assert "secret" not in storage.get(USER_DATA_KEY)

def test_register_with_known_email_rejected(session: SessionStore):
    """测试注册已存在的邮箱"""
    assert session.register("admin2", "admin@qa.com", "x") is False
    assert not session.is_authenticated

def test_session_restored_from_storage(storage: MemoryStorage):
    """测试重新加载时恢复登录用户"""
    SessionStore(storage).login("admin@qa.com", "admin123")

    restored = SessionStore(storage)

    assert restored.current_user == User(id="1", username="admin", email="admin@qa.com", role=Role.ADMIN)

@pytest.mark.parametrize("user_data", ["{broken", "[1, 2]", '{"username": "x"}'])
def test_corrupt_user_data_cleared(user_data: str):
    """测试持久化用户数据损坏时清除并以未登录状态启动"""
    storage = MemoryStorage({AUTH_TOKEN_KEY: "demo-token-1", USER_DATA_KEY: user_data})

    session = SessionStore(storage)

    assert not session.is_authenticated
    assert storage.get(AUTH_TOKEN_KEY) is None
    assert storage.get(USER_DATA_KEY) is None

def test_token_without_user_data_is_ignored():
    storage = MemoryStorage({AUTH_TOKEN_KEY: "demo-token-1"})
    assert not SessionStore(storage).is_authenticated

def test_custom_verifier(storage: MemoryStorage):
    """测试替换凭据校验"""
    verifier = DemoCredentialVerifier([
        {"id": "9", "username": "lead", "email": "lead@qa.com", "password": "pw", "role": "admin"},
    ])
    session = SessionStore(storage, verifier=verifier)

    assert session.login("admin@qa.com", "admin123") is False
    assert session.login("lead@qa.com", "pw") is True
    assert session.current_user.is_admin

# ----------------------------------------------------------------------
# 权限
# ----------------------------------------------------------------------

ADMIN = User(id="1", username="admin", email="admin@qa.com", role=Role.ADMIN)
MEMBER = User(id="2", username="tester", email="tester@qa.com", role=Role.MEMBER)

def make_case(created_by: str) -> TestCase:
    now = datetime(2024, 3, 1)
    return TestCase(
        id="x", test_case_id="TC001", title="t", module="Auth",
        created_by=created_by, created_at=now, updated_at=now
    )

def test_edit_permission():
    """测试用例编辑权限：管理员或创建人"""
    assert can_edit_test_case(ADMIN, make_case("someone"))
    assert can_edit_test_case(MEMBER, make_case("tester"))
    assert not can_edit_test_case(MEMBER, make_case("admin"))
    assert not can_edit_test_case(None, make_case("tester"))

def test_admin_only_permissions():
    assert can_manage_modules(ADMIN) and can_manage_team(ADMIN)
    assert not can_manage_modules(MEMBER)
    assert not can_manage_team(MEMBER)
    assert not can_manage_team(None)
