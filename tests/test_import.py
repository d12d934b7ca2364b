import io
import pandas as pd
import pytest
from openpyxl import Workbook, load_workbook
from casebook.api.models.case import Priority, Status
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.importer import (
    EMPTY_FILE_ERROR, IMPORT_SOURCE, REQUIRED_COLUMNS, UNREADABLE_FILE_ERROR,
    ImportFormatError, import_file, parse_file, template_rows, validate_records
)
from casebook.api.services.report import export_template
from casebook.storage.kv import TEST_CASES_KEY

HEADERS = REQUIRED_COLUMNS + ['Priority', 'Status', 'Tags']

def make_xlsx(rows) -> bytes:
    """生成测试用的 xlsx 文件内容"""
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()

# ----------------------------------------------------------------------
# 导入对账
# ----------------------------------------------------------------------

def test_import_scenario_with_existing_ids(seeded_catalog: CatalogStore):
    """测试已有 TC001/TC002 时导入 TC001 与 TC003"""
    result = seeded_catalog.import_test_cases([
        {"testCaseId": "TC001", "title": "x", "module": "Auth"},
        {"testCaseId": "TC003", "title": "y", "module": "UI"},
    ])

    assert (result.added, result.duplicates, result.skipped) == (1, 1, 0)
    assert sorted(tc.test_case_id for tc in seeded_catalog.test_cases) == ["TC001", "TC002", "TC003"]

def test_import_all_existing_ids_counts_duplicates(seeded_catalog: CatalogStore):
    """测试全部编号已存在时只计重复"""
    batch = [
        {"testCaseId": "TC001", "title": "a", "module": "Auth"},
        {"testCaseId": "TC002", "title": "b", "module": "UI"},
    ]
    result = seeded_catalog.import_test_cases(batch)

    assert result.added == 0
    assert result.duplicates == len(batch)
    assert result.skipped == 0

@pytest.mark.parametrize("test_case_id", ["TC001", "TC999", None])
def test_import_missing_title_is_skipped(seeded_catalog: CatalogStore, test_case_id):
    """测试缺少标题的记录总是计入 skipped"""
    result = seeded_catalog.import_test_cases([
        {"testCaseId": test_case_id, "title": "", "module": "Auth"},
    ])

    assert (result.added, result.duplicates, result.skipped) == (0, 0, 1)

def test_import_missing_module_or_id_is_skipped(catalog: CatalogStore):
    """测试缺少编号或模块的记录被跳过，其余记录照常导入"""
    result = catalog.import_test_cases([
        {"title": "no id", "module": "Auth"},
        {"testCaseId": "TC010", "title": "no module"},
        {"testCaseId": "TC011", "title": "ok", "module": "Auth"},
    ])

    assert (result.added, result.duplicates, result.skipped) == (1, 0, 2)
    assert catalog.test_cases[0].test_case_id == "TC011"

def test_import_applies_defaults(catalog: CatalogStore):
    """测试导入记录的默认值"""
    catalog.import_test_cases([{"testCaseId": "TC001", "title": "t", "module": "Auth"}])

    tc = catalog.test_cases[0]
    assert tc.priority == Priority.MEDIUM
    assert tc.status == Status.DRAFT
    assert tc.precondition == ""
    assert tc.steps == ""
    assert tc.expected_result == ""
    assert tc.tags == []
    assert tc.screenshots == []
    assert tc.created_by == "Unknown"
    assert tc.created_at == tc.updated_at

def test_import_rejects_in_batch_duplicates(catalog: CatalogStore):
    """测试同一批次内重复的编号只导入第一条"""
    result = catalog.import_test_cases([
        {"testCaseId": "TC001", "title": "first", "module": "Auth"},
        {"testCaseId": "TC001", "title": "second", "module": "Auth"},
    ])

    assert (result.added, result.duplicates, result.skipped) == (1, 1, 0)
    assert [tc.title for tc in catalog.test_cases] == ["first"]

def test_import_splits_tag_string_and_normalizes_choices(catalog: CatalogStore):
    """测试标签字符串拆分以及优先级、状态不区分大小写"""
    catalog.import_test_cases([{
        "testCaseId": "TC001",
        "title": "t",
        "module": "Auth",
        "tags": " login , smoke,,",
        "priority": "critical",
        "status": "PASSED",
    }, {
        "testCaseId": "TC002",
        "title": "t",
        "module": "Auth",
        "priority": "urgent",
    }])

    first, second = catalog.test_cases
    assert first.tags == ["login", "smoke"]
    assert first.priority == Priority.CRITICAL
    assert first.status == Status.PASSED
    assert second.priority == Priority.MEDIUM

def test_import_assigns_distinct_ids(catalog: CatalogStore):
    """测试导入记录分配互不相同的标识"""
    catalog.import_test_cases([
        {"testCaseId": f"TC{i:03d}", "title": "t", "module": "Auth"} for i in range(5)
    ])
    assert len({tc.id for tc in catalog.test_cases}) == 5

# ----------------------------------------------------------------------
# 文件解析
# ----------------------------------------------------------------------

def test_parse_file_maps_columns():
    """测试表格行映射为候选记录"""
    content = make_xlsx([
        HEADERS,
        ["TC001", "Login", "Authentication", "Account exists", "1. Open", "Logged in", "High", "Final", "login, smoke"],
        ["TC002", "Logout", "Authentication", None, None, None, None, None, None],
    ])

    records = parse_file("cases.xlsx", content)

    assert len(records) == 2
    assert records[0] == {
        "testCaseId": "TC001",
        "title": "Login",
        "module": "Authentication",
        "precondition": "Account exists",
        "steps": "1. Open",
        "expectedResult": "Logged in",
        "priority": "High",
        "status": "Final",
        "tags": ["login", "smoke"],
        "createdBy": IMPORT_SOURCE,
    }
    assert "precondition" not in records[1]
    assert records[1]["createdBy"] == IMPORT_SOURCE

def test_parse_file_stringifies_numeric_ids():
    """测试数字单元格转换为字符串"""
    content = make_xlsx([REQUIRED_COLUMNS, [101, "Numeric id", "API", "", "", ""]])

    records = parse_file("cases.xlsx", content)

    assert records[0]["testCaseId"] == "101"

def test_parse_file_missing_columns():
    """测试缺少必填列时整体拒绝"""
    content = make_xlsx([["Test Case ID", "Title", "Module"], ["TC001", "t", "Auth"]])

    with pytest.raises(ImportFormatError) as exc_info:
        parse_file("cases.xlsx", content)

    assert exc_info.value.errors == ["Missing required columns: Precondition, Steps, Expected Result"]

def test_parse_file_empty():
    """测试空文件"""
    with pytest.raises(ImportFormatError) as exc_info:
        parse_file("cases.xlsx", b"")
    assert exc_info.value.errors == [EMPTY_FILE_ERROR]

    with pytest.raises(ImportFormatError) as exc_info:
        parse_file("cases.xlsx", make_xlsx([]))
    assert exc_info.value.errors == [EMPTY_FILE_ERROR]

def test_parse_file_unreadable():
    """测试无法读取的文件"""
    with pytest.raises(ImportFormatError) as exc_info:
        parse_file("cases.xlsx", b"definitely not a workbook")
    assert exc_info.value.errors == [UNREADABLE_FILE_ERROR]

def test_parse_csv_file():
    """测试 CSV 文件导入"""
    content = (
        "Test Case ID,Title,Module,Precondition,Steps,Expected Result,Tags\n"
        'TC001,Login,Auth,,Open page,Works,"a, b"\n'
    ).encode("utf-8")

    records = parse_file("cases.csv", content)

    assert records[0]["testCaseId"] == "TC001"
    assert records[0]["tags"] == ["a", "b"]
    assert "precondition" not in records[0]

# ----------------------------------------------------------------------
# 完整导入流程
# ----------------------------------------------------------------------

def test_import_file_end_to_end(seeded_catalog: CatalogStore):
    """测试文件导入完整流程"""
    content = make_xlsx([
        HEADERS,
        ["TC001", "dup", "Auth", "", "", "", "", "", ""],
        ["TC003", "new", "UI", "", "Click", "Done", "Low", "Draft", "ui"],
    ])

    report = import_file(seeded_catalog, "cases.xlsx", content)

    assert report.ok
    assert (report.added, report.duplicates, report.skipped) == (1, 1, 0)
    imported = seeded_catalog.find_by_test_case_id("TC003")
    assert imported.created_by == IMPORT_SOURCE
    assert imported.priority == Priority.LOW
    assert imported.tags == ["ui"]

def test_import_file_rejects_rows_missing_required_fields(catalog: CatalogStore, storage):
    """测试任一数据行缺少必填字段时整体拒绝，并给出表格行号"""
    content = make_xlsx([
        REQUIRED_COLUMNS,
        ["TC010", "ok", "Auth", "", "", ""],
        ["TC011", None, "Auth", "", "", ""],
        [None, "no id", None, "", "", ""],
    ])

    report = import_file(catalog, "cases.xlsx", content)

    assert not report.ok
    assert report.errors == [
        "Row 3: Missing Title",
        "Row 4: Missing Test Case ID",
        "Row 4: Missing Module",
    ]
    assert report.added == 0
    assert catalog.test_cases == []
    assert storage.get(TEST_CASES_KEY) is None

def test_validate_records():
    assert validate_records([{"testCaseId": "TC001", "title": "t", "module": "Auth"}]) == []
    assert validate_records([{"testCaseId": "TC001", "module": "Auth"}]) == ["Row 2: Missing Title"]

@pytest.mark.parametrize("filename,engine", [
    ("cases.xlsx", "openpyxl"),
    ("legacy.XLS", "xlrd"),
])
def test_excel_engine_follows_extension(monkeypatch, filename, engine):
    """测试按扩展名选择 Excel 读取引擎"""
    calls = {}

    def fake_read_excel(buffer, **kwargs):
        calls.update(kwargs)
        return pd.DataFrame([REQUIRED_COLUMNS, ["TC001", "t", "Auth", "", "", ""]])

    monkeypatch.setattr(pd, "read_excel", fake_read_excel)

    records = parse_file(filename, b"workbook bytes")

    assert calls["engine"] == engine
    assert records[0]["testCaseId"] == "TC001"

def test_import_file_rejected_without_mutation(seeded_catalog: CatalogStore):
    """测试表头校验失败时不修改存储"""
    content = make_xlsx([["Title"], ["x"]])

    report = import_file(seeded_catalog, "cases.xlsx", content)

    assert not report.ok
    assert report.errors[0].startswith("Missing required columns:")
    assert report.added == 0
    assert len(seeded_catalog.test_cases) == 2

def test_template_round_trips_through_parser(catalog: CatalogStore):
    """测试导入模板可以直接导入"""
    content = export_template(template_rows())

    workbook = load_workbook(io.BytesIO(content))
    assert workbook.sheetnames == ["Test Cases"]

    report = import_file(catalog, "template.xlsx", content)
    assert report.added == 2
    assert catalog.find_by_test_case_id("TC001").tags == ["login", "authentication"]
