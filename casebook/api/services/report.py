import io
from collections import Counter
from typing import Any, Dict, Iterable, List, Sequence
import pandas as pd
from casebook.api.models.case import Module, Status, TestCase
from casebook.api.models.report import (
    ChartData, ChartPoint, DashboardData, DashboardStats, ModuleStats,
    StatusCounts, SummaryStats
)
from casebook.api.services.query import recent_test_cases
from casebook.logger.logger import logger
from casebook.utils.common import format_date, today_str
from casebook.utils.decorators import log_function_call

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

STATUS_COLORS = {
    "Draft": "#6b7280",
    "Final": "#3b82f6",
    "Passed": "#10b981",
    "Failed": "#ef4444",
}

PRIORITY_COLORS = {
    "Low": "#10b981",
    "Medium": "#f59e0b",
    "High": "#f97316",
    "Critical": "#ef4444",
}

DETAILED_COLUMNS = [
    'Test Case ID', 'Title', 'Module', 'Priority', 'Status', 'Created By',
    'Created Date', 'Updated Date', 'Precondition', 'Steps', 'Expected Result', 'Tags'
]

def _percent(part: int, total: int) -> int:
    """百分比，四舍五入（0.5 向上）到整数"""
    if total <= 0:
        return 0
    return (part * 200 + total) // (total * 2)

def status_counts(cases: Iterable[TestCase]) -> StatusCounts:
    """按状态计数"""
    counts = Counter(tc.status for tc in cases)
    return StatusCounts(
        total=sum(counts.values()),
        draft=counts[Status.DRAFT],
        final=counts[Status.FINAL],
        passed=counts[Status.PASSED],
        failed=counts[Status.FAILED],
    )

def dashboard_stats(cases: Sequence[TestCase], modules: Sequence[Module]) -> DashboardStats:
    """仪表盘总览：总数、通过、失败、待处理（草稿）、模块数"""
    counts = status_counts(cases)
    return DashboardStats(
        total=counts.total,
        passed=counts.passed,
        failed=counts.failed,
        pending=counts.draft,
        modules=len(modules),
    )

def module_stats(cases: Sequence[TestCase], modules: Sequence[Module]) -> List[ModuleStats]:
    """每个模块的用例统计及通过率"""
    stats = []
    for module in modules:
        counts = status_counts(tc for tc in cases if tc.module == module.name)
        stats.append(ModuleStats(
            id=module.id,
            name=module.name,
            description=module.description,
            pass_rate=_percent(counts.passed, counts.total),
            **counts.model_dump()
        ))
    return stats

def user_stats(cases: Iterable[TestCase], username: str) -> StatusCounts:
    """某个创建人的用例统计"""
    return status_counts(tc for tc in cases if tc.created_by == username)

def unique_creators(cases: Iterable[TestCase]) -> List[str]:
    """去重后的创建人，保持首次出现的顺序"""
    return list(dict.fromkeys(tc.created_by for tc in cases if tc.created_by))

def dashboard_data(cases: Sequence[TestCase], modules: Sequence[Module], recent: int = 5) -> DashboardData:
    return DashboardData(
        stats=dashboard_stats(cases, modules),
        recent=recent_test_cases(cases, recent),
        modules=module_stats(cases, modules),
    )

def summary_stats(cases: Sequence[TestCase]) -> SummaryStats:
    """报表汇总：总数及按状态、优先级、模块分布

    各分布只包含出现过的取值，按首次出现的顺序排列。
    """
    by_status: Dict[str, int] = {}
    by_priority: Dict[str, int] = {}
    by_module: Dict[str, int] = {}
    for tc in cases:
        by_status[tc.status.value] = by_status.get(tc.status.value, 0) + 1
        by_priority[tc.priority.value] = by_priority.get(tc.priority.value, 0) + 1
        by_module[tc.module] = by_module.get(tc.module, 0) + 1
    return SummaryStats(
        total=len(cases),
        by_status=by_status,
        by_priority=by_priority,
        by_module=by_module,
    )

def chart_data(summary: SummaryStats) -> ChartData:
    """图表数据序列"""
    return ChartData(
        status=[ChartPoint(name=k, value=v, color=STATUS_COLORS.get(k)) for k, v in summary.by_status.items()],
        priority=[ChartPoint(name=k, value=v, color=PRIORITY_COLORS.get(k)) for k, v in summary.by_priority.items()],
        module=[ChartPoint(name=k, value=v) for k, v in summary.by_module.items()],
    )

# ----------------------------------------------------------------------
# Excel 导出
# ----------------------------------------------------------------------

def detailed_rows(cases: Iterable[TestCase]) -> List[Dict[str, Any]]:
    """明细报表行"""
    return [
        {
            'Test Case ID': tc.test_case_id,
            'Title': tc.title,
            'Module': tc.module,
            'Priority': tc.priority.value,
            'Status': tc.status.value,
            'Created By': tc.created_by,
            'Created Date': format_date(tc.created_at),
            'Updated Date': format_date(tc.updated_at),
            'Precondition': tc.precondition,
            'Steps': tc.steps,
            'Expected Result': tc.expected_result,
            'Tags': ', '.join(tc.tags),
        }
        for tc in cases
    ]

def summary_rows(summary: SummaryStats) -> List[Dict[str, Any]]:
    """汇总报表行"""
    rows = [{'Metric': 'Total Test Cases', 'Value': summary.total}]
    rows.extend({'Metric': status.value, 'Value': summary.by_status.get(status.value, 0)} for status in Status)
    rows.extend({'Metric': f'Module: {module}', 'Value': count} for module, count in summary.by_module.items())
    return rows

def _to_excel(frame: pd.DataFrame, sheet_name: str) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()

@log_function_call(level="INFO")
def export_detailed_report(cases: Sequence[TestCase]) -> bytes:
    """导出用例明细报表"""
    frame = pd.DataFrame(detailed_rows(cases), columns=DETAILED_COLUMNS)
    logger.info(f"导出明细报表: {len(frame)} 个用例")
    return _to_excel(frame, 'Test Cases Report')

@log_function_call(level="INFO")
def export_summary_report(summary: SummaryStats) -> bytes:
    """导出汇总报表"""
    frame = pd.DataFrame(summary_rows(summary), columns=['Metric', 'Value'])
    return _to_excel(frame, 'Summary Report')

def export_template(rows: List[List[str]]) -> bytes:
    """导出导入模板（第一行为表头）"""
    frame = pd.DataFrame(rows[1:], columns=rows[0])
    return _to_excel(frame, 'Test Cases')

def detailed_report_filename() -> str:
    return f"test-cases-report-{today_str()}.xlsx"

def summary_report_filename() -> str:
    return f"summary-report-{today_str()}.xlsx"

TEMPLATE_FILENAME = "test_cases_template.xlsx"
