from fastapi import APIRouter, HTTPException, Depends, File, Query, UploadFile
from fastapi.responses import Response
from typing import List, Optional
from pydantic import BaseModel
from loguru import logger
from casebook.api.deps import get_attachments, get_catalog, require_user
from casebook.api.models.base import ResponseModel
from casebook.api.models.case import ALL, QueryState, TestCase, TestCaseCreate, TestCaseUpdate
from casebook.api.models.report import ImportReport
from casebook.api.models.user import User
from casebook.api.services.auth import can_edit_test_case
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.importer import import_file, template_rows
from casebook.api.services.query import TestCaseFilter, filter_test_cases, sort_test_cases
from casebook.api.services.report import TEMPLATE_FILENAME, XLSX_MEDIA_TYPE, export_template
from casebook.storage.storage import AttachmentStorage

router = APIRouter(prefix="/api/v1/cases", tags=["cases"])

class CaseList(BaseModel):
    """用例列表响应模型"""
    total: int
    items: List[TestCase]

def xlsx_response(content: bytes, filename: str) -> Response:
    """Excel 文件下载响应"""
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

def _editable_case(case_id: str, user: User, store: CatalogStore) -> TestCase:
    """获取当前用户可编辑的用例"""
    case = store.get_test_case(case_id)
    if case is None:
        raise HTTPException(status_code=404, detail="用例不存在")
    if not can_edit_test_case(user, case):
        raise HTTPException(status_code=403, detail="只有管理员或创建人可以修改该用例")
    return case

@router.get("")
async def list_cases(
    search: Optional[str] = Query(None, description="搜索词，不传时使用共享查询状态"),
    module: Optional[str] = Query(None, description="模块名称，不传时使用共享查询状态"),
    status: str = Query(ALL, description="状态"),
    priority: str = Query(ALL, description="优先级"),
    created_by: str = Query(ALL, description="创建人"),
    sort: str = Query("testCaseId", description="排序列"),
    direction: str = Query("asc", pattern="^(asc|desc)$", description="排序方向"),
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[CaseList]:
    """获取用例列表（筛选 + 排序）"""
    criteria = TestCaseFilter(
        search=store.search_term if search is None else search,
        module=store.selected_module if module is None else module,
        status=status,
        priority=priority,
        created_by=created_by
    )
    try:
        items = sort_test_cases(filter_test_cases(store.test_cases, criteria), sort, direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ResponseModel(data=CaseList(total=len(items), items=items))

@router.put("/query-state")
async def update_query_state(
    state: QueryState,
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[QueryState]:
    """更新共享查询状态（搜索词、选中模块）"""
    if state.search_term is not None:
        store.set_search_term(state.search_term)
    if state.selected_module is not None:
        store.set_selected_module(state.selected_module)
    return ResponseModel(data=QueryState(
        search_term=store.search_term,
        selected_module=store.selected_module
    ))

@router.post("")
async def create_case(
    data: TestCaseCreate,
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[TestCase]:
    """新增用例，创建人为当前用户"""
    try:
        case = store.add_test_case(data.model_copy(update={"created_by": user.username}))
        return ResponseModel(data=case)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/import")
async def import_cases(
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[ImportReport]:
    """从 Excel 文件批量导入用例"""
    filename = file.filename or "upload.xlsx"
    content = await file.read()
    report = import_file(store, filename, content)
    if not report.ok:
        raise HTTPException(status_code=400, detail=report.errors)
    return ResponseModel(data=report)

@router.get("/import/template")
async def download_import_template() -> Response:
    """下载导入模板"""
    return xlsx_response(export_template(template_rows()), TEMPLATE_FILENAME)

@router.get("/{case_id}")
async def get_case(
    case_id: str,
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[TestCase]:
    """获取用例详情"""
    case = store.get_test_case(case_id)
    if case is None:
        raise HTTPException(status_code=404, detail="用例不存在")
    return ResponseModel(data=case)

@router.put("/{case_id}")
async def update_case(
    case_id: str,
    updates: TestCaseUpdate,
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[TestCase]:
    """部分更新用例"""
    _editable_case(case_id, user, store)
    try:
        case = store.update_test_case(case_id, updates)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ResponseModel(data=case)

@router.delete("/{case_id}")
async def delete_case(
    case_id: str,
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[bool]:
    """删除用例"""
    _editable_case(case_id, user, store)
    return ResponseModel(data=store.delete_test_case(case_id))

@router.post("/{case_id}/screenshots")
async def upload_screenshot(
    case_id: str,
    file: UploadFile = File(...),
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog),
    attachments: AttachmentStorage = Depends(get_attachments)
) -> ResponseModel[TestCase]:
    """上传用例截图"""
    case = _editable_case(case_id, user, store)
    content = await file.read()
    try:
        reference = await attachments.save_screenshot(
            case.id,
            file.filename or "screenshot",
            content,
            file.content_type
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"保存截图失败: {str(e)}")
        raise HTTPException(status_code=500, detail=f"保存截图失败: {str(e)}")

    updated = store.update_test_case(case_id, {"screenshots": case.screenshots + [reference]})
    return ResponseModel(data=updated)
