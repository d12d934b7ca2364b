from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from loguru import logger
from casebook.api.deps import get_catalog, require_user
from casebook.api.models.base import ResponseModel
from casebook.api.models.case import ALL
from casebook.api.models.report import DashboardData, ReportData
from casebook.api.models.user import User
from casebook.api.routers.case import xlsx_response
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.query import TestCaseFilter, filter_test_cases
from casebook.api.services.report import (
    chart_data, dashboard_data, detailed_report_filename, export_detailed_report,
    export_summary_report, summary_report_filename, summary_stats, unique_creators
)

router = APIRouter(prefix="/api/v1", tags=["dashboard"])

@router.get("/dashboard")
async def get_dashboard_data(
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[DashboardData]:
    """获取仪表盘数据

    Returns:
        ResponseModel[DashboardData]: 仪表盘数据，包括：
        - stats: 用例总数、通过、失败、待处理、模块数
        - recent: 最近更新的 5 个用例
        - modules: 各模块统计及通过率
    """
    return ResponseModel(data=dashboard_data(store.test_cases, store.modules))

def _report_cases(store: CatalogStore, module: str, created_by: str):
    return filter_test_cases(store.test_cases, TestCaseFilter(module=module, created_by=created_by))

@router.get("/reports/summary")
async def get_report_summary(
    module: str = Query(ALL, description="模块名称"),
    created_by: str = Query(ALL, alias="user", description="创建人"),
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[ReportData]:
    """获取报表汇总与图表数据"""
    summary = summary_stats(_report_cases(store, module, created_by))
    return ResponseModel(data=ReportData(
        summary=summary,
        chart=chart_data(summary),
        creators=unique_creators(store.test_cases)
    ))

@router.get("/reports/export/detailed")
async def export_detailed(
    module: str = Query(ALL, description="模块名称"),
    created_by: str = Query(ALL, alias="user", description="创建人"),
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> Response:
    """导出用例明细报表"""
    try:
        content = export_detailed_report(_report_cases(store, module, created_by))
    except Exception as e:
        logger.error(f"导出明细报表失败: {str(e)}")
        raise HTTPException(status_code=500, detail=f"导出Excel失败: {str(e)}")
    return xlsx_response(content, detailed_report_filename())

@router.get("/reports/export/summary")
async def export_summary(
    module: str = Query(ALL, description="模块名称"),
    created_by: str = Query(ALL, alias="user", description="创建人"),
    user: User = Depends(require_user),
    store: CatalogStore = Depends(get_catalog)
) -> Response:
    """导出汇总报表"""
    try:
        content = export_summary_report(summary_stats(_report_cases(store, module, created_by)))
    except Exception as e:
        logger.error(f"导出汇总报表失败: {str(e)}")
        raise HTTPException(status_code=500, detail=f"导出Excel失败: {str(e)}")
    return xlsx_response(content, summary_report_filename())
