from datetime import datetime
from typing import Any, Generic, Optional, TypeVar
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

class ResponseModel(BaseModel, Generic[T]):
    """统一响应模型"""
    code: int = 200
    message: str = "success"
    data: Optional[T] = None

def to_local_naive(value: datetime) -> datetime:
    """带时区的时间转换为本地时间并去掉时区信息"""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)

class CamelModel(BaseModel):
    """驼峰命名模型基类

    Python 属性使用下划线命名，持久化和接口输出使用驼峰命名。
    时间戳统一为本地时间（不带时区），例如 "2024-01-01T10:00:00.000Z" 会转换为本地时间。
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False
    )

    @field_validator("*")
    @classmethod
    def normalize_timestamps(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return to_local_naive(value)
        return value

    def to_storage(self) -> dict:
        """转换为可持久化的字典（时间戳编码为ISO字符串）"""
        return self.model_dump(mode="json", by_alias=True)
