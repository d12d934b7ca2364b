import sys
from pathlib import Path
from typing import Optional
from loguru import logger
from casebook.config.settings import LogConfig, settings

def setup_logger(config: Optional[LogConfig] = None, debug: Optional[bool] = None):
    """配置日志记录器

    控制台输出到 stderr；LOG_FILE 非空时再写入按大小轮转的日志文件。

    Args:
        config: 日志配置，默认读取全局配置
        debug: 是否输出变量诊断信息，默认跟随 DEBUG

    Returns:
        loguru 日志实例
    """
    config = config or settings.log
    diagnose = settings.DEBUG if debug is None else debug

    # 移除已有的处理器，重复调用时不会重复输出
    logger.remove()

    logger.add(
        sink=sys.stderr,
        level=config.LOG_LEVEL,
        format=config.LOG_FORMAT,
        colorize=True,
        backtrace=True,
        diagnose=diagnose,
    )

    if config.LOG_FILE:
        Path(config.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            sink=config.LOG_FILE,
            level=config.LOG_LEVEL,
            format=config.LOG_FORMAT,
            rotation=config.LOG_ROTATION,
            retention=config.LOG_RETENTION,
            compression="zip",
            backtrace=True,
            diagnose=diagnose,
            enqueue=True,
        )

    return logger

# 创建全局日志实例
logger = setup_logger()

__all__ = ["logger", "setup_logger"]
