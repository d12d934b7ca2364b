from .base import Base
from .models import KeyValue
from .session import get_db, engine, SessionLocal, create_db_engine
from loguru import logger

__all__ = [
    "Base",
    "KeyValue",
    "get_db",
    "engine",
    "SessionLocal",
    "create_db_engine",
    "init_db"
]

def init_db(bind=None):
    """初始化数据库（创建数据表）"""
    try:
        logger.info("开始初始化数据库...")
        Base.metadata.create_all(bind or engine)
        logger.info("数据库初始化成功")
    except Exception as e:
        logger.error(f"数据库初始化失败: {str(e)}")
        raise
