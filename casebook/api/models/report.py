from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from .case import TestCase
from .user import TeamUser

class ImportResult(BaseModel):
    """导入对账结果"""
    added: int = 0
    skipped: int = 0
    duplicates: int = 0

class ImportReport(ImportResult):
    """文件导入报告，errors 非空表示整体被拒绝"""
    errors: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

class DashboardStats(BaseModel):
    """仪表盘统计"""
    total: int
    passed: int
    failed: int
    pending: int
    modules: int

class StatusCounts(BaseModel):
    """按状态计数"""
    total: int = 0
    draft: int = 0
    final: int = 0
    passed: int = 0
    failed: int = 0

class ModuleStats(StatusCounts):
    """模块统计"""
    id: str
    name: str
    description: Optional[str] = None
    pass_rate: int = 0

class SummaryStats(BaseModel):
    """报表汇总"""
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    by_module: Dict[str, int]

class ChartPoint(BaseModel):
    """图表数据点"""
    name: str
    value: int
    color: Optional[str] = None

class ChartData(BaseModel):
    """图表数据"""
    status: List[ChartPoint]
    priority: List[ChartPoint]
    module: List[ChartPoint]

class DashboardData(BaseModel):
    """仪表盘数据"""
    stats: DashboardStats
    recent: List[TestCase]
    modules: List[ModuleStats]

class ReportData(BaseModel):
    """报表页数据"""
    summary: SummaryStats
    chart: ChartData
    creators: List[str]

class TeamMemberInfo(BaseModel):
    """团队成员及其用例统计"""
    user: TeamUser
    stats: StatusCounts
