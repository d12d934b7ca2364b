from fastapi import APIRouter, HTTPException, Depends
from typing import List, Optional
from casebook.api.deps import get_catalog, get_team, require_team_admin
from casebook.api.models.base import ResponseModel
from casebook.api.models.report import TeamMemberInfo
from casebook.api.models.user import TeamUser, TeamUserCreate, TeamUserUpdate, User
from casebook.api.services.catalog import CatalogStore
from casebook.api.services.report import user_stats
from casebook.api.services.team import TeamStore

router = APIRouter(prefix="/api/v1/team", tags=["team"])

@router.get("")
async def list_members(
    user: User = Depends(require_team_admin),
    team: TeamStore = Depends(get_team),
    store: CatalogStore = Depends(get_catalog)
) -> ResponseModel[List[TeamMemberInfo]]:
    """获取团队成员及其用例统计"""
    members = [
        TeamMemberInfo(user=member, stats=user_stats(store.test_cases, member.username))
        for member in team.users
    ]
    return ResponseModel(data=members)

@router.post("")
async def create_member(
    data: TeamUserCreate,
    user: User = Depends(require_team_admin),
    team: TeamStore = Depends(get_team)
) -> ResponseModel[TeamUser]:
    """新增团队成员"""
    try:
        return ResponseModel(data=team.add_user(data.username, data.email, data.password, data.role))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.put("/{member_id}")
async def update_member(
    member_id: str,
    data: TeamUserUpdate,
    user: User = Depends(require_team_admin),
    team: TeamStore = Depends(get_team)
) -> ResponseModel[Optional[TeamUser]]:
    """编辑团队成员"""
    try:
        return ResponseModel(data=team.update_user(member_id, data.username, data.email, data.role))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/{member_id}/toggle")
async def toggle_member(
    member_id: str,
    user: User = Depends(require_team_admin),
    team: TeamStore = Depends(get_team)
) -> ResponseModel[Optional[TeamUser]]:
    """启用/停用团队成员"""
    return ResponseModel(data=team.toggle_active(member_id))

@router.delete("/{member_id}")
async def delete_member(
    member_id: str,
    user: User = Depends(require_team_admin),
    team: TeamStore = Depends(get_team)
) -> ResponseModel[bool]:
    """删除团队成员（保留其用例）"""
    return ResponseModel(data=team.delete_user(member_id))
