from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import Field
from .base import CamelModel

# "全部"筛选哨兵值
ALL = "all"

class Priority(str, Enum):
    """用例优先级"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

class Status(str, Enum):
    """用例状态"""
    DRAFT = "Draft"
    FINAL = "Final"
    PASSED = "Passed"
    FAILED = "Failed"

class TestCase(CamelModel):
    """测试用例"""
    __test__ = False  # 避免被 pytest 收集

    id: str
    test_case_id: str
    title: str
    module: str  # 按模块名称关联，不是外键
    precondition: str = ""
    steps: str = ""
    expected_result: str = ""
    tags: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    status: Status = Status.DRAFT
    created_by: str = "Unknown"
    created_at: datetime
    updated_at: datetime
    screenshots: List[str] = Field(default_factory=list)

class TestCaseCreate(CamelModel):
    """创建测试用例的输入，不含标识和时间戳"""
    __test__ = False

    test_case_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    module: str = Field(min_length=1)
    precondition: str = ""
    steps: str = ""
    expected_result: str = ""
    tags: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    status: Status = Status.DRAFT
    created_by: str = "Unknown"
    screenshots: List[str] = Field(default_factory=list)

class TestCaseUpdate(CamelModel):
    """部分更新，只合并显式提供的字段"""
    __test__ = False

    test_case_id: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = Field(None, min_length=1)
    module: Optional[str] = Field(None, min_length=1)
    precondition: Optional[str] = None
    steps: Optional[str] = None
    expected_result: Optional[str] = None
    tags: Optional[List[str]] = None
    priority: Optional[Priority] = None
    status: Optional[Status] = None
    created_by: Optional[str] = None
    screenshots: Optional[List[str]] = None

class Module(CamelModel):
    """功能模块"""
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

class ModuleCreate(CamelModel):
    """创建模块的输入"""
    name: str
    description: Optional[str] = None

class ModuleUpdate(CamelModel):
    """模块部分更新"""
    name: Optional[str] = None
    description: Optional[str] = None

class QueryState(CamelModel):
    """共享的查询状态"""
    search_term: Optional[str] = None
    selected_module: Optional[str] = None
