from dataclasses import dataclass
from typing import Iterable, List
from casebook.api.models.case import ALL, TestCase

# 可排序的列，值为 TestCase 属性名
SORT_COLUMNS = {
    "testCaseId": "test_case_id",
    "title": "title",
    "module": "module",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

TIMESTAMP_COLUMNS = {"created_at", "updated_at"}

@dataclass
class TestCaseFilter:
    """用例筛选条件

    各筛选项为 "all" 时表示不过滤；search 为空时表示不搜索。
    """
    __test__ = False

    search: str = ""
    module: str = ALL
    status: str = ALL
    priority: str = ALL
    created_by: str = ALL

    def matches(self, tc: TestCase) -> bool:
        """判断用例是否满足全部筛选条件"""
        if self.search:
            term = self.search.lower()
            haystacks = (tc.title, tc.test_case_id, tc.steps, tc.expected_result)
            if not any(term in (text or "").lower() for text in haystacks):
                return False

        if self.module != ALL and tc.module != self.module:
            return False
        if self.status != ALL and tc.status.value != self.status:
            return False
        if self.priority != ALL and tc.priority.value != self.priority:
            return False
        if self.created_by != ALL and tc.created_by != self.created_by:
            return False
        return True

def filter_test_cases(cases: Iterable[TestCase], criteria: TestCaseFilter) -> List[TestCase]:
    """按条件筛选用例，保持原有顺序"""
    return [tc for tc in cases if criteria.matches(tc)]

def resolve_sort_column(column: str) -> str:
    """把接口列名（驼峰）或属性名解析为属性名"""
    if column in SORT_COLUMNS:
        return SORT_COLUMNS[column]
    if column in SORT_COLUMNS.values():
        return column
    raise ValueError(f"不支持的排序列: {column}")

def sort_test_cases(cases: Iterable[TestCase], column: str = "testCaseId", direction: str = "asc") -> List[TestCase]:
    """按列排序用例

    字符串列不区分大小写，时间戳列按时间先后比较。
    排序稳定：键相同的用例保持原集合中的相对顺序（升序降序均如此）。

    Args:
        cases: 用例集合
        column: 排序列（testCaseId/title/module/createdAt/updatedAt）
        direction: asc 或 desc

    Returns:
        List[TestCase]: 排序后的新列表
    """
    attr = resolve_sort_column(column)
    if direction not in ("asc", "desc"):
        raise ValueError(f"不支持的排序方向: {direction}")

    if attr in TIMESTAMP_COLUMNS:
        key = lambda tc: getattr(tc, attr).timestamp()
    else:
        key = lambda tc: (getattr(tc, attr) or "").lower()

    return sorted(cases, key=key, reverse=direction == "desc")

def recent_test_cases(cases: Iterable[TestCase], limit: int = 5) -> List[TestCase]:
    """最近更新的用例"""
    return sorted(cases, key=lambda tc: tc.updated_at, reverse=True)[:limit]
