import json
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional, Union
from ..logger.logger import logger

def ensure_dir(dir_path: Union[str, Path]) -> Path:
    """确保目录存在,如果不存在则创建"""
    path = Path(dir_path)
    path.mkdir(parents=True, exist_ok=True)
    return path

def get_file_extension(file_path: Union[str, Path]) -> str:
    """获取文件扩展名"""
    return Path(file_path).suffix.lower()

def safe_json_loads(text: Optional[str], default: Any = None) -> Any:
    """安全的JSON解析

    Args:
        text: JSON字符串
        default: 解析失败时的默认值

    Returns:
        Any: 解析结果或默认值
    """
    if text is None:
        return default
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"JSON解析失败: {str(e)}")
        return default

def json_dumps(data: Any) -> str:
    """JSON序列化，保留非ASCII字符"""
    return json.dumps(data, ensure_ascii=False)

def next_timestamp(now: datetime, previous: Optional[datetime] = None) -> datetime:
    """生成严格递增的时间戳

    时钟未前进时在上一次时间戳基础上加一微秒。
    """
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now

def format_date(value: datetime) -> str:
    """格式化为 YYYY-MM-DD"""
    return value.strftime("%Y-%m-%d")

def today_str() -> str:
    """当天日期字符串"""
    return date.today().isoformat()

def format_file_size(size_bytes: int) -> str:
    """格式化文件大小

    Args:
        size_bytes: 文件大小(字节)

    Returns:
        str: 格式化后的大小
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.2f}{unit}"
        size_bytes /= 1024
    return f"{size_bytes:.2f}TB"
