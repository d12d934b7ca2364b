from typing import Optional
from fastapi import Depends, HTTPException
from casebook.api.models.user import User
from casebook.api.services.auth import SessionStore, can_manage_modules, can_manage_team
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.team import TeamStore
from casebook.config.settings import settings
from casebook.storage.kv import get_storage
from casebook.storage.storage import AttachmentStorage, get_attachment_storage

# 进程内单例，对应浏览器中的单个标签页
_catalog: Optional[CatalogStore] = None
_session: Optional[SessionStore] = None
_team: Optional[TeamStore] = None

def get_catalog() -> CatalogStore:
    """获取用例目录存储"""
    global _catalog
    if _catalog is None:
        _catalog = CatalogStore(get_storage(), seed_defaults=settings.storage.STORAGE_SEED_DEFAULTS)
    return _catalog

def get_session() -> SessionStore:
    """获取会话存储"""
    global _session
    if _session is None:
        _session = SessionStore(get_storage())
    return _session

def get_team() -> TeamStore:
    """获取团队成员存储"""
    global _team
    if _team is None:
        _team = TeamStore(get_storage(), seed_defaults=settings.storage.STORAGE_SEED_DEFAULTS)
    return _team

def get_attachments() -> AttachmentStorage:
    return get_attachment_storage()

def reset_stores() -> None:
    """丢弃已创建的存储实例，下次访问时重新加载"""
    global _catalog, _session, _team
    _catalog = _session = _team = None

def require_user(session: SessionStore = Depends(get_session)) -> User:
    """要求已登录"""
    if session.current_user is None:
        raise HTTPException(status_code=401, detail="未登录")
    return session.current_user

def require_module_admin(user: User = Depends(require_user)) -> User:
    """要求具备模块管理权限"""
    if not can_manage_modules(user):
        raise HTTPException(status_code=403, detail="只有管理员可以管理模块")
    return user

def require_team_admin(user: User = Depends(require_user)) -> User:
    """要求具备团队管理权限"""
    if not can_manage_team(user):
        raise HTTPException(status_code=403, detail="只有管理员可以管理团队")
    return user
