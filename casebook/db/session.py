from typing import Generator, Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from casebook.config.settings import settings

def create_db_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """创建数据库引擎

    Args:
        url: 数据库连接URL，默认读取配置
        echo: 是否打印SQL语句，默认读取配置

    Returns:
        Engine: 同步引擎
    """
    url = url or settings.db.DB_URL
    echo = settings.db.DB_ECHO if echo is None else echo
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url:
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)

# 创建数据库引擎
engine = create_db_engine()

# 创建会话工厂
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

def get_db() -> Generator[Session, None, None]:
    """获取数据库会话"""
    with SessionLocal() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
