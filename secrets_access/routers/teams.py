"""Teams API endpoints.

Team membership uses the same permission engine as projects, with the
team role hierarchy TEAM_OWNER > TEAM_ADMIN > TEAM_MEMBER.

Access Control:
- Create team: any authenticated user, who becomes its TEAM_OWNER
- List members: any team member
- Add (one or in bulk) / change role / remove: TEAM_OWNER or TEAM_ADMIN
- Transfer ownership: TEAM_OWNER only; the caller becomes TEAM_ADMIN
"""

from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from ..schemas.membership import (
    BulkMemberAdd,
    MemberAdd,
    MemberRoleUpdate,
    OwnershipTransfer,
    ResourceRef,
    TeamMember,
    UserSummary,
)
from ..schemas.project import BulkAddResponse, ResourceCreate, TeamMemberView, TeamResponse
from ..services.auth_service import get_current_user
from ..services.membership_service import (
    plan_add_member,
    plan_bulk_add_members,
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
    team_snapshot_or_404,
    utcnow,
)

router = APIRouter(prefix="/api/teams", tags=["Teams"])


async def _team_member(store: MembershipStore, team_id: UUID, user_id: UUID) -> TeamMember:
    snapshot = await team_snapshot_or_404(store, team_id)
    member = snapshot.team_member(team_id, user_id)
    if member is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Member with user ID {user_id} not found in this team",
        )
    return member


@router.post(
    "",
    response_model=TeamResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a team",
)
async def create_team(
    team_data: ResourceCreate,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> TeamResponse:
    team = await store.create_team(team_data.name, current_user.id, utcnow())
    return TeamResponse.model_validate(team)


@router.get(
    "/{team_id}/members",
    response_model=List[TeamMemberView],
    summary="List team members",
    responses={
        200: {"description": "Team members, highest role first"},
        404: {"description": "Team not found or caller is not a member"},
    },
)
async def list_team_members(
    team_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[TeamMemberView]:
    snapshot = await team_snapshot_or_404(store, team_id)
    actor = snapshot.team_member(team_id, current_user.id)
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Team with ID {team_id} not found",
        )

    members = snapshot.members_of(ResourceRef.team(team_id))
    owner_count = count_owners(members)
    members.sort(key=lambda m: (-m.role.priority, str(m.user_id)))
    return [
        TeamMemberView(**member.model_dump(), actions=member_actions(actor, member, owner_count))
        for member in members
    ]


@router.post(
    "/{team_id}/members",
    response_model=TeamMember,
    status_code=status.HTTP_201_CREATED,
    summary="Add a team member",
    responses={
        201: {"description": "Member added"},
        400: {"description": "Invalid role"},
        403: {"description": "Caller cannot add members or grant the role"},
        404: {"description": "Team not found or caller is not a member"},
        409: {"description": "User is already a member"},
    },
)
async def add_team_member(
    team_id: UUID,
    member_data: MemberAdd,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> TeamMember:
    resource = ResourceRef.team(team_id)
    role = parse_role_for(resource, member_data.role)
    snapshot = await team_snapshot_or_404(store, team_id)
    await commit_outcome(
        store,
        plan_add_member(current_user.id, member_data.user_id, role, resource, snapshot, utcnow()),
    )
    return await _team_member(store, team_id, member_data.user_id)


@router.post(
    "/{team_id}/members/bulk",
    response_model=BulkAddResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add several team members",
    description="Entries that cannot be added are reported in `rejected`; the rest are added together.",
    responses={
        201: {"description": "At least one member added"},
        400: {"description": "Invalid role in an entry"},
        403: {"description": "Caller cannot add members, or no entry could be granted"},
        404: {"description": "Team not found or caller is not a member"},
        409: {"description": "Every listed user is already a member"},
    },
)
async def bulk_add_team_members(
    team_id: UUID,
    bulk_data: BulkMemberAdd,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> BulkAddResponse:
    resource = ResourceRef.team(team_id)
    entries = [(entry.user_id, parse_role_for(resource, entry.role)) for entry in bulk_data.members]
    snapshot = await team_snapshot_or_404(store, team_id)
    plan = await commit_outcome(
        store,
        plan_bulk_add_members(current_user.id, entries, resource, snapshot, utcnow()),
    )

    after = await team_snapshot_or_404(store, team_id)
    added = [after.team_member(team_id, change.key[1]) for change in plan.changes]
    return BulkAddResponse(added=added, rejected=plan.rejected)


@router.put(
    "/{team_id}/members/{user_id}",
    response_model=TeamMember,
    summary="Change a team member's role",
)
async def update_team_member_role(
    team_id: UUID,
    user_id: UUID,
    role_update: MemberRoleUpdate,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> TeamMember:
    resource = ResourceRef.team(team_id)
    role = parse_role_for(resource, role_update.role)
    snapshot = await team_snapshot_or_404(store, team_id)
    await commit_outcome(store, plan_role_change(current_user.id, user_id, role, resource, snapshot))
    return await _team_member(store, team_id, user_id)


@router.delete(
    "/{team_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a team member",
)
async def remove_team_member(
    team_id: UUID,
    user_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    resource = ResourceRef.team(team_id)
    snapshot = await team_snapshot_or_404(store, team_id)
    await commit_outcome(store, plan_removal(current_user.id, user_id, resource, snapshot))


@router.post(
    "/{team_id}/leave",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Leave a team",
)
async def leave_team(
    team_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    resource = ResourceRef.team(team_id)
    snapshot = await team_snapshot_or_404(store, team_id)
    await commit_outcome(store, plan_leave(current_user.id, resource, snapshot))


@router.post(
    "/{team_id}/transfer-ownership",
    response_model=List[TeamMember],
    summary="Transfer team ownership",
    description="The caller steps down to TEAM_ADMIN and the target becomes TEAM_OWNER.",
)
async def transfer_team_ownership(
    team_id: UUID,
    transfer: OwnershipTransfer,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[TeamMember]:
    resource = ResourceRef.team(team_id)
    snapshot = await team_snapshot_or_404(store, team_id)
    await commit_outcome(
        store,
        plan_ownership_transfer(current_user.id, transfer.new_owner_id, resource, snapshot),
    )
    return [
        await _team_member(store, team_id, user_id)
        for user_id in (current_user.id, transfer.new_owner_id)
    ]
