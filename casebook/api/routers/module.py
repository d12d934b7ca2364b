from fastapi import APIRouter, HTTPException, Depends
from typing import List, Optional
from casebook.api.deps import get_catalog, require_module_admin, require_user
from casebook.api.models.base import ResponseModel
from casebook.api.models.case import Module, ModuleCreate, ModuleUpdate
from casebook.api.models.report import ModuleStats
from casebook.api.models.user import User
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.report import module_stats

router = APIRouter(prefix="/api/v1/modules", tags=["modules"])

@router.get("")
async def list_modules(
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[List[Module]]:
    """获取模块列表"""
    return ResponseModel(data=store.modules)

@router.get("/stats")
async def get_module_stats(
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[List[ModuleStats]]:
    """获取各模块的用例统计"""
    return ResponseModel(data=module_stats(store.test_cases, store.modules))

@router.post("")
async def create_module(
    data: ModuleCreate,
    user: User = Depends(require_module_admin),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[Module]:
    """新增模块"""
    try:
        return ResponseModel(data=store.add_module(data))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.put("/{module_id}")
async def update_module(
    module_id: str,
    updates: ModuleUpdate,
    user: User = Depends(require_module_admin),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[Optional[Module]]:
    """更新模块，模块不存在时不做任何修改"""
    try:
        return ResponseModel(data=store.update_module(module_id, updates))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/{module_id}")
async def delete_module(
    module_id: str,
    user: User = Depends(require_module_admin),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[bool]:
    """删除模块及其全部用例"""
    return ResponseModel(data=store.delete_module(module_id))
