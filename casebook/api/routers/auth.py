from fastapi import APIRouter, HTTPException, Depends
from loguru import logger
from casebook.api.deps import get_session, get_team, require_user
from casebook.api.models.base import ResponseModel
from casebook.api.models.user import LoginRequest, RegisterRequest, User
from casebook.api.services.auth import SessionStore
from casebook.api.services.team import TeamStore

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/login")
async def login(
    request: LoginRequest,
    session: SessionStore = Depends(get_session),
    team: TeamStore = Depends(get_team)
) -> ResponseModel[User]:
    """登录"""
    if not session.login(request.email, request.password):
        raise HTTPException(status_code=401, detail="邮箱或密码错误")
    team.record_login(request.email)
    return ResponseModel(data=session.current_user)

@router.post("/logout")
async def logout(session: SessionStore = Depends(get_session)) -> ResponseModel[bool]:
    """退出登录"""
    session.logout()
    return ResponseModel(data=True)

@router.post("/register")
async def register(
    request: RegisterRequest,
    session: SessionStore = Depends(get_session)
) -> ResponseModel[User]:
    """注册并登录"""
    if not session.register(request.username, request.email, request.password, request.role):
        raise HTTPException(status_code=400, detail="Email already exists")
    logger.info(f"新用户已登录: {session.current_user.username}")
    return ResponseModel(data=session.current_user)

@router.get("/me")
async def current_user(user: User = Depends(require_user)) -> ResponseModel[User]:
    """获取当前登录用户"""
    return ResponseModel(data=user)
