"""Project API endpoints: creation, access resolution and team links.

Access Control:
- Create project: any authenticated user, who becomes its sole OWNER
- Resolve access: the caller's own access only
- Link/unlink team: project OWNER/ADMIN; linking also requires
  TEAM_OWNER/TEAM_ADMIN on the team
"""

from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..schemas.access import EffectiveAccess
from ..schemas.membership import UserSummary
from ..schemas.project import ProjectResponse, ResourceCreate
from ..services.access_resolver import resolve_access, resolve_access_for_all_projects
from ..services.auth_service import get_current_user
from ..services.membership_service import plan_link_team, plan_unlink_team
from ..services.membership_store import MembershipStore
from .helpers import (
    commit_outcome,
    get_store,
    project_snapshot_or_404,
    raise_if_rejected,
    team_snapshot_or_404,
    utcnow,
)

router = APIRouter(prefix="/api/projects", tags=["Projects"])


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a project",
    responses={
        201: {"description": "Project created, caller is owner"},
        401: {"description": "Not authenticated"},
    },
)
async def create_project(
    project_data: ResourceCreate,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> ProjectResponse:
    project = await store.create_project(project_data.name, current_user.id, utcnow())
    return ProjectResponse.model_validate(project)


@router.get(
    "/access",
    response_model=List[EffectiveAccess],
    summary="Resolve access to all projects",
    description="Effective role and source for every project the caller can reach.",
)
async def list_my_access(
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[EffectiveAccess]:
    snapshot = await store.load_user_snapshot(current_user.id)
    return resolve_access_for_all_projects(current_user.id, snapshot)


@router.get(
    "/{project_id}/access",
    response_model=EffectiveAccess,
    summary="Resolve access to one project",
    responses={
        200: {"description": "Caller's effective access"},
        404: {"description": "Project not found or not accessible"},
    },
)
async def get_my_access(
    project_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> EffectiveAccess:
    snapshot = await project_snapshot_or_404(store, project_id)
    return raise_if_rejected(resolve_access(current_user.id, project_id, snapshot))


@router.post(
    "/{project_id}/teams/{team_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Link a team to a project",
    description="Members of the team gain VIEWER access to the project.",
    responses={
        204: {"description": "Team linked"},
        403: {"description": "Caller cannot manage the project or the team"},
        404: {"description": "Project or team not found"},
        409: {"description": "Team already linked"},
    },
)
async def link_team(
    project_id: UUID,
    team_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    snapshot = await project_snapshot_or_404(store, project_id, extra_team_ids=[team_id])
    await team_snapshot_or_404(store, team_id)
    await commit_outcome(store, plan_link_team(current_user.id, team_id, project_id, snapshot))


@router.delete(
    "/{project_id}/teams/{team_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unlink a team from a project",
    responses={
        204: {"description": "Team unlinked"},
        403: {"description": "Caller cannot manage the project"},
        404: {"description": "Project not found or team not linked"},
    },
)
async def unlink_team(
    project_id: UUID,
    team_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    snapshot = await project_snapshot_or_404(store, project_id)
    await commit_outcome(store, plan_unlink_team(current_user.id, team_id, project_id, snapshot))

