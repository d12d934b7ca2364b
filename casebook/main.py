from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from casebook.api.deps import get_catalog, get_session, get_team
from casebook.api.middlewares.logger import LoggerMiddleware
from casebook.api.models.base import ResponseModel
from casebook.api.routers import auth, case, dashboard, module, team
from casebook.config.settings import settings
from casebook.logger.logger import logger
import os

# 创建FastAPI应用实例
app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="测试用例管理API：用例、模块、导入导出、报表与团队管理",
    version=settings.APP_VERSION
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 在生产环境中应该设置具体的域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 添加日志中间件
app.add_middleware(LoggerMiddleware)

# 注册路由
app.include_router(auth.router)
app.include_router(case.router)
app.include_router(module.router)
app.include_router(team.router)
app.include_router(dashboard.router)

# 健康检查接口
@app.get("/health")
async def health_check():
    """健康检查接口"""
    return ResponseModel(data={"status": "ok"})

# 异常处理
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc):
    """HTTP异常处理器"""
    logger.error(f"HTTP error occurred: {exc.detail}")
    if isinstance(exc.detail, list):
        message, data = "; ".join(str(item) for item in exc.detail), exc.detail
    else:
        message, data = str(exc.detail), None
    return JSONResponse(
        status_code=exc.status_code,
        content=ResponseModel(
            code=exc.status_code,
            message=message,
            data=data
        ).model_dump(),
        headers=getattr(exc, "headers", None)
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    """请求参数校验失败统一返回 400"""
    errors = [
        f"{'.'.join(str(loc) for loc in error['loc'] if loc != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.warning(f"Request validation failed: {errors}")
    return JSONResponse(
        status_code=400,
        content=ResponseModel(
            code=400,
            message="; ".join(errors),
            data=errors
        ).model_dump()
    )

@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """通用异常处理器"""
    logger.error(f"Unexpected error occurred: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=ResponseModel(
            code=500,
            message="Internal server error",
            data=None
        ).model_dump()
    )

# 启动事件
@app.on_event("startup")
async def startup_event():
    """应用启动时加载持久化状态"""
    catalog = get_catalog()
    session = get_session()
    get_team()
    logger.info(
        f"Stores loaded: {len(catalog.test_cases)} test cases, "
        f"{len(catalog.modules)} modules, "
        f"user={session.current_user.username if session.current_user else None}"
    )

if __name__ == "__main__":
    # 标记为主进程
    os.environ["RELOAD_PROCESS"] = "0"

    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
