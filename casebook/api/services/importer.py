import io
from typing import Any, Dict, List, Tuple
import pandas as pd
from casebook.api.models.report import ImportReport
from casebook.api.services.catalog import CatalogStore
from casebook.logger.logger import logger
from casebook.utils.common import get_file_extension
from casebook.utils.decorators import log_function_call

REQUIRED_COLUMNS = ['Test Case ID', 'Title', 'Module', 'Precondition', 'Steps', 'Expected Result']
OPTIONAL_COLUMNS = ['Priority', 'Status', 'Tags']

# 表头 -> 记录字段
COLUMN_FIELDS = {
    'Test Case ID': 'testCaseId',
    'Title': 'title',
    'Module': 'module',
    'Precondition': 'precondition',
    'Steps': 'steps',
    'Expected Result': 'expectedResult',
    'Priority': 'priority',
    'Status': 'status',
    'Tags': 'tags',
}

IMPORT_SOURCE = "Excel Import"
EMPTY_FILE_ERROR = "The Excel file is empty"
UNREADABLE_FILE_ERROR = "Error processing Excel file. Please check the format and try again."

class ImportFormatError(ValueError):
    """导入文件格式错误，携带面向用户的错误信息列表"""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors))
        self.errors = errors

def _cell(value: Any) -> Any:
    """空单元格返回 None，其余转换为去除首尾空白的字符串"""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None

# 扩展名 -> pandas Excel 读取引擎
EXCEL_ENGINES = {
    '.xlsx': 'openpyxl',
    '.xls': 'xlrd',
}

def _read_sheet(filename: str, content: bytes) -> pd.DataFrame:
    """读取第一个工作表（或CSV），不解析表头"""
    buffer = io.BytesIO(content)
    extension = get_file_extension(filename)
    if extension == ".csv":
        return pd.read_csv(buffer, header=None, dtype=str, keep_default_na=False, skip_blank_lines=True)
    return pd.read_excel(
        buffer,
        sheet_name=0,
        header=None,
        dtype=str,
        engine=EXCEL_ENGINES.get(extension, 'openpyxl')
    )

def parse_rows(frame: pd.DataFrame) -> Tuple[List[str], List[Dict[str, Any]]]:
    """把表格转换为候选记录

    第一行是表头，缺少必填列时抛出 ImportFormatError，不解析任何记录。

    Args:
        frame: 不含表头解析的原始表格

    Returns:
        Tuple[List[str], List[Dict[str, Any]]]: 表头和候选记录
    """
    frame = frame.dropna(how="all")
    if frame.empty:
        raise ImportFormatError([EMPTY_FILE_ERROR])

    headers = [_cell(h) or "" for h in frame.iloc[0].tolist()]
    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise ImportFormatError([f"Missing required columns: {', '.join(missing)}"])

    records = []
    for _, row in frame.iloc[1:].iterrows():
        values = dict(zip(headers, row.tolist()))
        record = {}
        for column, field in COLUMN_FIELDS.items():
            value = _cell(values.get(column))
            if value is not None:
                record[field] = value
        if 'tags' in record:
            record['tags'] = [t.strip() for t in record['tags'].split(',') if t.strip()]
        record['createdBy'] = IMPORT_SOURCE
        records.append(record)

    return headers, records

def parse_file(filename: str, content: bytes) -> List[Dict[str, Any]]:
    """解析导入文件为候选记录

    Raises:
        ImportFormatError: 文件为空、缺少必填列或无法读取
    """
    if not content:
        raise ImportFormatError([EMPTY_FILE_ERROR])
    try:
        frame = _read_sheet(filename, content)
    except pd.errors.EmptyDataError:
        raise ImportFormatError([EMPTY_FILE_ERROR])
    except Exception as e:
        logger.error(f"读取导入文件失败: {filename}, error={str(e)}")
        raise ImportFormatError([UNREADABLE_FILE_ERROR]) from e

    _, records = parse_rows(frame)
    logger.info(f"解析导入文件: {filename}, {len(records)} 条记录")
    return records

# 必填字段 -> 错误信息中的列名
REQUIRED_FIELDS = {
    'testCaseId': 'Test Case ID',
    'title': 'Title',
    'module': 'Module',
}

def validate_records(records: List[Dict[str, Any]]) -> List[str]:
    """逐行校验必填字段

    行号按表格计算：表头为第 1 行，第一条数据为第 2 行。

    Returns:
        List[str]: 错误信息，全部通过时为空
    """
    errors = []
    for index, record in enumerate(records):
        for field, column in REQUIRED_FIELDS.items():
            if not record.get(field):
                errors.append(f"Row {index + 2}: Missing {column}")
    return errors

@log_function_call(level="INFO")
def import_file(store: CatalogStore, filename: str, content: bytes) -> ImportReport:
    """导入用例文件：解析 -> 校验表头与每行必填字段 -> 对账写入

    任一校验失败时整体拒绝，不修改存储；否则返回各项计数。
    """
    try:
        records = parse_file(filename, content)
        errors = validate_records(records)
        if errors:
            raise ImportFormatError(errors)
    except ImportFormatError as e:
        logger.warning(f"导入被拒绝: {filename}, {e.errors}")
        return ImportReport(errors=e.errors)

    result = store.import_test_cases(records)
    return ImportReport(**result.model_dump())

def template_rows() -> List[List[str]]:
    """导入模板：表头加两条示例"""
    return [
        REQUIRED_COLUMNS + OPTIONAL_COLUMNS,
        [
            'TC001',
            'Login with valid credentials',
            'Authentication',
            'User account exists',
            '1. Navigate to login page\n2. Enter valid email\n3. Enter valid password\n4. Click login button',
            'User should be logged in successfully',
            'High',
            'Draft',
            'login, authentication'
        ],
        [
            'TC002',
            'Login with invalid credentials',
            'Authentication',
            'User account exists',
            '1. Navigate to login page\n2. Enter invalid email\n3. Enter invalid password\n4. Click login button',
            'Error message should be displayed',
            'Medium',
            'Draft',
            'login, negative'
        ]
    ]
