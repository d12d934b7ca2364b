from functools import wraps
import time
from typing import Callable, Tuple, Type, TypeVar, ParamSpec
from casebook.logger.logger import logger

P = ParamSpec("P")
R = TypeVar("R")

def log_function_call(level: str = "DEBUG") -> Callable[[Callable[P, R]], Callable[P, R]]:
    """函数调用日志装饰器

    记录函数开始、耗时以及异常，异常会继续向上抛出。

    Args:
        level: 日志级别

    Returns:
        装饰后的函数
    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start_time = time.perf_counter()
            logger.log(level, "开始执行函数: {}", func.__name__)

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.log(
                    "ERROR",
                    "函数 {} 执行异常, 耗时: {:.3f}秒, 异常信息: {}",
                    func.__name__,
                    time.perf_counter() - start_time,
                    str(e)
                )
                raise

            logger.log(
                level,
                "函数 {} 执行完成, 耗时: {:.3f}秒",
                func.__name__,
                time.perf_counter() - start_time
            )
            return result
        return wrapper
    return decorator

def retry(
    max_retries: int = 3,
    delay: float = 1,
    backoff: float = 2.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,)
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """重试装饰器

    Args:
        max_retries: 最大尝试次数
        delay: 初始延迟时间(秒)
        backoff: 延迟时间的增长倍数
        exceptions: 需要重试的异常类型

    Returns:
        装饰后的函数
    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            retry_count = 0
            current_delay = delay

            while True:
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    retry_count += 1

                    if retry_count >= max_retries:
                        logger.error(
                            "函数 {} 重试 {} 次后仍然失败: {}",
                            func.__name__,
                            max_retries,
                            str(e)
                        )
                        raise

                    logger.warning(
                        "函数 {} 执行失败，{}/{} 次重试，等待 {} 秒: {}",
                        func.__name__,
                        retry_count,
                        max_retries,
                        current_delay,
                        str(e)
                    )

                    time.sleep(current_delay)
                    current_delay *= backoff
        return wrapper
    return decorator
