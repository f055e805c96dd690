"""Project Members API endpoints.

Provides endpoints for managing direct project members and for reading
the unified member list (direct members plus team-inherited viewers).

Access Control:
- List members: anyone with effective access to the project
- Add members / change roles / remove: OWNER or ADMIN
- Change or remove an OWNER: OWNER only
- Leave: any direct member except the sole OWNER
- Transfer ownership: OWNER only; the caller becomes ADMIN

Every write loads a fresh snapshot, computes a plan and commits it with
the snapshot version, so concurrent edits surface as 409 Conflict.
"""

import logging
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas.access import EffectiveAccess, EffectiveMemberView
from ..schemas.membership import (
    MemberAdd,
    MemberRoleUpdate,
    OwnershipTransfer,
    ProjectMember,
    ResourceRef,
    UserSummary,
)
from ..services.access_resolver import list_effective_members, resolve_access
from ..services.auth_service import get_current_user
from ..services.membership_service import (
    plan_add_member,
    plan_leave,
    plan_ownership_transfer,
    plan_removal,
    plan_role_change,
)
from ..services.membership_store import MembershipStore
from ..services.permission_service import count_owners, member_actions
from .helpers import (
    commit_outcome,
    get_store,
    parse_role_for,
    project_snapshot_or_404,
    raise_if_rejected,
    utcnow,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects/{project_id}", tags=["Project Members"])


async def _direct_member(store: MembershipStore, project_id: UUID, user_id: UUID) -> ProjectMember:
    snapshot = await project_snapshot_or_404(store, project_id)
    member = snapshot.project_member(project_id, user_id)
    if member is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Member with user ID {user_id} not found in this project",
        )
    return member


@router.get(
    "/members",
    response_model=List[EffectiveMemberView],
    summary="List project members",
    description="Direct members and team-inherited viewers, with the actions "
    "the caller may perform on each.",
    responses={
        200: {"description": "Unified member list"},
        404: {"description": "Project not found or not accessible"},
    },
)
async def list_members(
    project_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[EffectiveMemberView]:
    snapshot = await project_snapshot_or_404(store, project_id)
    actor = raise_if_rejected(resolve_access(current_user.id, project_id, snapshot))

    owner_count = count_owners(snapshot.members_of(ResourceRef.project(project_id)))
    return [
        EffectiveMemberView(
            **access.model_dump(),
            actions=member_actions(actor, access, owner_count),
        )
        for access in list_effective_members(project_id, snapshot)
    ]


@router.post(
    "/members",
    response_model=ProjectMember,
    status_code=status.HTTP_201_CREATED,
    summary="Add a project member",
    responses={
        201: {"description": "Member added"},
        400: {"description": "Invalid role"},
        403: {"description": "Caller cannot add members or grant the role"},
        404: {"description": "Project not found or not accessible"},
        409: {"description": "User is already a member"},
    },
)
async def add_member(
    project_id: UUID,
    member_data: MemberAdd,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> ProjectMember:
    resource = ResourceRef.project(project_id)
    role = parse_role_for(resource, member_data.role)
    snapshot = await project_snapshot_or_404(store, project_id)

    outcome = plan_add_member(current_user.id, member_data.user_id, role, resource, snapshot, utcnow())
    await commit_outcome(store, outcome)
    return await _direct_member(store, project_id, member_data.user_id)


@router.put(
    "/members/{user_id}",
    response_model=ProjectMember,
    summary="Change a member's role",
    responses={
        200: {"description": "Role updated"},
        400: {"description": "Invalid role, self-edit or last owner"},
        403: {"description": "Caller cannot change this member's role"},
        404: {"description": "Project or member not found"},
        409: {"description": "Membership changed concurrently"},
    },
)
async def update_member_role(
    project_id: UUID,
    user_id: UUID,
    role_update: MemberRoleUpdate,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> ProjectMember:
    resource = ResourceRef.project(project_id)
    role = parse_role_for(resource, role_update.role)
    snapshot = await project_snapshot_or_404(store, project_id)

    plan = await commit_outcome(
        store, plan_role_change(current_user.id, user_id, role, resource, snapshot)
    )
    if plan.is_empty:
        logger.info(f"Role of {user_id} in project {project_id} already {role.value}")
    return await _direct_member(store, project_id, user_id)


@router.delete(
    "/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a project member",
    responses={
        204: {"description": "Member removed"},
        400: {"description": "Self-removal or last owner"},
        403: {"description": "Caller cannot remove this member"},
        404: {"description": "Project or member not found"},
    },
)
async def remove_member(
    project_id: UUID,
    user_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    resource = ResourceRef.project(project_id)
    snapshot = await project_snapshot_or_404(store, project_id)
    await commit_outcome(store, plan_removal(current_user.id, user_id, resource, snapshot))


@router.post(
    "/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Leave a project",
    responses={
        204: {"description": "Membership removed"},
        400: {"description": "Caller is the last owner"},
        404: {"description": "Caller is not a direct member"},
    },
)
async def leave_project(
    project_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    resource = ResourceRef.project(project_id)
    snapshot = await project_snapshot_or_404(store, project_id)
    await commit_outcome(store, plan_leave(current_user.id, resource, snapshot))


@router.post(
    "/transfer-ownership",
    response_model=List[EffectiveAccess],
    summary="Transfer project ownership",
    description="The caller steps down to ADMIN and the target becomes OWNER, atomically.",
    responses={
        200: {"description": "Effective access of the caller and the new owner"},
        400: {"description": "Transfer to self"},
        403: {"description": "Caller is not an owner"},
        404: {"description": "Project or target member not found"},
        409: {"description": "Membership changed concurrently"},
    },
)
async def transfer_ownership(
    project_id: UUID,
    transfer: OwnershipTransfer,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[EffectiveAccess]:
    resource = ResourceRef.project(project_id)
    snapshot = await project_snapshot_or_404(store, project_id)
    await commit_outcome(
        store,
        plan_ownership_transfer(current_user.id, transfer.new_owner_id, resource, snapshot),
    )

    refreshed = await project_snapshot_or_404(store, project_id)
    return [
        raise_if_rejected(resolve_access(user_id, project_id, refreshed))
        for user_id in (current_user.id, transfer.new_owner_id)
    ]
