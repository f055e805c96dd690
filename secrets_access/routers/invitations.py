"""Invitations API endpoints.

Provides endpoints for inviting email addresses to a project and for the
invitee to accept or decline. All endpoints require authentication.

Role-based permissions for creating invitations:
- VIEWER / MEMBER: Cannot invite anyone
- ADMIN: Can invite with ADMIN, MEMBER or VIEWER
- OWNER: Can invite with any role
"""

from datetime import timedelta
from typing import Annotated, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from ..config import settings
from ..schemas.invitation import InvitationCreate, ProjectInvitation
from ..schemas.membership import ResourceRef, UserSummary
from ..schemas.mutation import AccessErrorKind, Rejection
from ..services.auth_service import get_current_user
from ..services.invitation_service import (
    list_pending_invitations,
    plan_accept_invitation,
    plan_decline_invitation,
    plan_expire_stale_invitations,
    plan_invitation,
    plan_revoke_invitation,
)
from ..services.membership_service import resolve_actor
from ..services.membership_store import MembershipStore
from ..services.permission_service import can_manage_members
from .helpers import (
    commit_outcome,
    get_store,
    project_snapshot_or_404,
    raise_if_rejected,
    utcnow,
)

router = APIRouter(tags=["Invitations"])


async def _require_manager(store: MembershipStore, project_id: UUID, user_id: UUID):
    """Load the project snapshot and check the caller manages its members."""
    snapshot = await project_snapshot_or_404(store, project_id)
    actor = resolve_actor(user_id, ResourceRef.project(project_id), snapshot)
    if actor is None:
        raise_if_rejected(
            Rejection(
                kind=AccessErrorKind.NOT_FOUND,
                message=f"Project with ID {project_id} not found",
            )
        )
    if not can_manage_members(actor.role):
        raise_if_rejected(
            Rejection(
                kind=AccessErrorKind.UNAUTHORIZED,
                message="Only owners and admins can manage invitations",
            )
        )
    return snapshot


async def _invitation_snapshot(store: MembershipStore, invitation_id: UUID):
    project_id = await store.find_invitation_project(invitation_id)
    if project_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Invitation with ID {invitation_id} not found",
        )
    return project_id, await project_snapshot_or_404(store, project_id)


@router.get(
    "/api/projects/{project_id}/invitations",
    response_model=List[ProjectInvitation],
    summary="List pending invitations",
    responses={
        200: {"description": "Pending invitations, newest first"},
        403: {"description": "Caller cannot manage members"},
        404: {"description": "Project not found or not accessible"},
    },
)
async def list_invitations(
    project_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[ProjectInvitation]:
    snapshot = await _require_manager(store, project_id, current_user.id)
    return list_pending_invitations(project_id, snapshot, utcnow())


@router.post(
    "/api/projects/{project_id}/invitations",
    response_model=ProjectInvitation,
    status_code=status.HTTP_201_CREATED,
    summary="Invite an email address",
    responses={
        201: {"description": "Invitation created"},
        403: {"description": "Caller cannot invite with this role"},
        404: {"description": "Project not found or not accessible"},
        409: {"description": "A pending invitation already exists"},
    },
)
async def create_invitation(
    project_id: UUID,
    invitation_data: InvitationCreate,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> ProjectInvitation:
    snapshot = await project_snapshot_or_404(store, project_id)
    plan = await commit_outcome(
        store,
        plan_invitation(
            current_user.id,
            project_id,
            invitation_data.email,
            invitation_data.role,
            snapshot,
            utcnow(),
            expires_in=timedelta(days=settings.invitation_expiry_days),
        ),
    )
    # The created invitation is the last change of the plan
    return ProjectInvitation(**plan.changes[-1].after)


@router.delete(
    "/api/projects/{project_id}/invitations/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke an invitation",
    responses={
        204: {"description": "Invitation revoked"},
        403: {"description": "Caller cannot manage members"},
        404: {"description": "Invitation not found"},
        409: {"description": "Invitation already resolved"},
    },
)
async def revoke_invitation(
    project_id: UUID,
    invitation_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> None:
    snapshot = await project_snapshot_or_404(store, project_id)
    await commit_outcome(
        store,
        plan_revoke_invitation(current_user.id, project_id, invitation_id, snapshot, utcnow()),
    )


@router.post(
    "/api/projects/{project_id}/invitations/expire",
    response_model=List[ProjectInvitation],
    summary="Expire overdue invitations",
    description="Move every overdue pending invitation of the project to EXPIRED.",
)
async def expire_invitations(
    project_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> List[ProjectInvitation]:
    snapshot = await _require_manager(store, project_id, current_user.id)
    plan = await commit_outcome(store, plan_expire_stale_invitations(project_id, snapshot, utcnow()))
    return [ProjectInvitation(**change.after) for change in plan.changes]


@router.post(
    "/api/invitations/{invitation_id}/accept",
    response_model=ProjectInvitation,
    summary="Accept an invitation",
    responses={
        200: {"description": "Invitation accepted, membership created"},
        403: {"description": "Invitation was sent to another email"},
        404: {"description": "Invitation not found"},
        409: {"description": "Invitation already resolved or expired"},
    },
)
async def accept_invitation(
    invitation_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> ProjectInvitation:
    project_id, snapshot = await _invitation_snapshot(store, invitation_id)
    await commit_outcome(store, plan_accept_invitation(invitation_id, current_user, snapshot, utcnow()))

    refreshed = await project_snapshot_or_404(store, project_id)
    return refreshed.invitation(invitation_id)


@router.post(
    "/api/invitations/{invitation_id}/decline",
    response_model=ProjectInvitation,
    summary="Decline an invitation",
    responses={
        200: {"description": "Invitation declined"},
        403: {"description": "Invitation was sent to another email"},
        404: {"description": "Invitation not found"},
        409: {"description": "Invitation already resolved"},
    },
)
async def decline_invitation(
    invitation_id: UUID,
    current_user: Annotated[UserSummary, Depends(get_current_user)],
    store: MembershipStore = Depends(get_store),
) -> ProjectInvitation:
    project_id, snapshot = await _invitation_snapshot(store, invitation_id)
    await commit_outcome(store, plan_decline_invitation(invitation_id, current_user, snapshot, utcnow()))

    refreshed = await project_snapshot_or_404(store, project_id)
    return refreshed.invitation(invitation_id)
