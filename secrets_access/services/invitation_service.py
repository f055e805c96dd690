"""
Project invitation lifecycle.

    PENDING --accept--> ACCEPTED   (invitee, creates the project membership)
    PENDING --revoke--> REVOKED    (owner/admin of the project)
    PENDING --decline-> REVOKED    (invitee)
    PENDING --expire--> EXPIRED    (external clock, after expires_at)

ACCEPTED, REVOKED and EXPIRED are terminal. Any transition attempted from
a terminal state is refused with InvitationAlreadyResolved.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Union
from uuid import UUID, uuid4

from ..schemas.invitation import InvitationStatus, ProjectInvitation
from ..schemas.membership import (
    MembershipSnapshot,
    ProjectMember,
    RecordType,
    ResourceRef,
    UserSummary,
)
from ..schemas.mutation import AccessErrorKind, MutationPlan, RecordChange, Rejection
from ..schemas.role import ProjectRole
from .membership_service import (
    MutationOutcome,
    create_change,
    resolve_actor,
    update_change,
)
from .permission_service import can_grant_role, can_manage_members

logger = logging.getLogger(__name__)

DEFAULT_INVITATION_TTL = timedelta(days=7)

ALLOWED_TRANSITIONS = {
    InvitationStatus.PENDING: frozenset(
        {InvitationStatus.ACCEPTED, InvitationStatus.REVOKED, InvitationStatus.EXPIRED}
    ),
}


def _same_email(a: str, b: str) -> bool:
    return a.strip().casefold() == b.strip().casefold()


def transition_invitation(
    invitation: ProjectInvitation,
    status: InvitationStatus,
    now: datetime,
) -> Union[ProjectInvitation, Rejection]:
    """
    Move an invitation to a new status.

    Args:
        invitation: Current invitation
        status: Target status
        now: Current time, recorded as accepted_at on acceptance

    Returns:
        The updated invitation, or InvitationAlreadyResolved if the
        transition is not allowed from the current status.
    """
    if status not in ALLOWED_TRANSITIONS.get(invitation.status, frozenset()):
        return Rejection(
            kind=AccessErrorKind.INVITATION_ALREADY_RESOLVED,
            message=f"Invitation is already {invitation.status.value.lower()}",
        )
    fields = {"status": status}
    if status == InvitationStatus.ACCEPTED:
        fields["accepted_at"] = now
    return invitation.model_copy(update=fields)


def _transition_change(
    invitation: ProjectInvitation,
    status: InvitationStatus,
    now: datetime,
) -> Union[RecordChange, Rejection]:
    updated = transition_invitation(invitation, status, now)
    if isinstance(updated, Rejection):
        return updated
    fields = {"status": updated.status, "accepted_at": updated.accepted_at}
    return update_change(RecordType.INVITATION, invitation, **fields)


def _find_invitation(
    invitation_id: UUID,
    snapshot: MembershipSnapshot,
    project_id: Optional[UUID] = None,
) -> Union[ProjectInvitation, Rejection]:
    invitation = snapshot.invitation(invitation_id)
    if invitation is None or (project_id is not None and invitation.project_id != project_id):
        return Rejection(
            kind=AccessErrorKind.NOT_FOUND,
            message=f"Invitation with ID {invitation_id} not found",
        )
    return invitation


def list_pending_invitations(
    project_id: UUID,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> List[ProjectInvitation]:
    """Pending, not yet overdue invitations of a project, newest first."""
    pending = [
        inv
        for inv in snapshot.invitations
        if inv.project_id == project_id
        and inv.status == InvitationStatus.PENDING
        and not inv.is_overdue(now)
    ]
    return sorted(pending, key=lambda inv: inv.created_at, reverse=True)


def plan_invitation(
    actor_id: UUID,
    project_id: UUID,
    email: str,
    role: ProjectRole,
    snapshot: MembershipSnapshot,
    now: datetime,
    expires_in: timedelta = DEFAULT_INVITATION_TTL,
) -> MutationOutcome:
    """
    Create a pending invitation to a project.

    Rules:
    - The actor must manage members of the project
    - The invited role must be grantable by the actor
    - Only one pending invitation per (project, email); a pending one that
      is already overdue is expired in the same plan instead of blocking

    Args:
        actor_id: Inviting user
        project_id: Project being shared
        email: Invitee email address
        role: Role granted on acceptance
        snapshot: Snapshot of the project including its invitations
        now: Creation time
        expires_in: Time until the invitation expires

    Returns:
        A plan creating the invitation, or a Rejection.
    """
    project = ResourceRef.project(project_id)
    actor = resolve_actor(actor_id, project, snapshot)
    if actor is None:
        return Rejection(
            kind=AccessErrorKind.NOT_FOUND,
            message=f"User {actor_id} has no access to {project}",
        )
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners and admins can invite members.",
        )
    if not can_grant_role(actor.role, role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message=f"You don't have permission to invite with the {role.display_name} role.",
        )

    changes = []
    for existing in snapshot.invitations:
        if (
            existing.project_id != project_id
            or existing.status != InvitationStatus.PENDING
            or not _same_email(existing.email, email)
        ):
            continue
        if not existing.is_overdue(now):
            return Rejection(
                kind=AccessErrorKind.DUPLICATE_INVITATION,
                message=f"Invitation already sent to {email}",
            )
        changes.append(_transition_change(existing, InvitationStatus.EXPIRED, now))

    invitation = ProjectInvitation(
        id=uuid4(),
        project_id=project_id,
        email=email.strip(),
        role=role,
        status=InvitationStatus.PENDING,
        invited_by=actor_id,
        created_at=now,
        expires_at=now + expires_in,
    )
    changes.append(create_change(RecordType.INVITATION, invitation))

    return MutationPlan(
        resource=project,
        base_version=snapshot.version,
        changes=changes,
        description=f"invite {invitation.email} to {project} as {role.value}",
    )


def plan_accept_invitation(
    invitation_id: UUID,
    user: UserSummary,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> MutationOutcome:
    """
    Accept an invitation as the invited user.

    The user's email must match the invitation. Acceptance creates the
    project membership with the invited role; if the user already is a
    direct member only the invitation is marked accepted.
    """
    invitation = _find_invitation(invitation_id, snapshot)
    if isinstance(invitation, Rejection):
        return invitation

    if not _same_email(invitation.email, user.email):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Invitation email does not match user email",
        )
    if invitation.status == InvitationStatus.PENDING and invitation.is_overdue(now):
        return Rejection(
            kind=AccessErrorKind.INVITATION_ALREADY_RESOLVED,
            message="Invitation has expired",
        )

    change = _transition_change(invitation, InvitationStatus.ACCEPTED, now)
    if isinstance(change, Rejection):
        return change

    changes = [change]
    if snapshot.project_member(invitation.project_id, user.id) is None:
        member = ProjectMember(
            project_id=invitation.project_id,
            user_id=user.id,
            role=invitation.role,
            joined_at=now,
        )
        changes.append(create_change(RecordType.PROJECT_MEMBER, member))

    return MutationPlan(
        resource=ResourceRef.project(invitation.project_id),
        base_version=snapshot.version,
        changes=changes,
        description=f"{user.id} accepts invitation {invitation_id}",
    )


def plan_decline_invitation(
    invitation_id: UUID,
    user: UserSummary,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> MutationOutcome:
    """Decline an invitation as the invited user; it becomes REVOKED."""
    invitation = _find_invitation(invitation_id, snapshot)
    if isinstance(invitation, Rejection):
        return invitation
    if not _same_email(invitation.email, user.email):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Invitation email does not match user email",
        )

    change = _transition_change(invitation, InvitationStatus.REVOKED, now)
    if isinstance(change, Rejection):
        return change
    return MutationPlan(
        resource=ResourceRef.project(invitation.project_id),
        base_version=snapshot.version,
        changes=[change],
        description=f"{user.id} declines invitation {invitation_id}",
    )


def plan_revoke_invitation(
    actor_id: UUID,
    project_id: UUID,
    invitation_id: UUID,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> MutationOutcome:
    """Revoke a pending invitation; requires managing the project's members."""
    project = ResourceRef.project(project_id)
    actor = resolve_actor(actor_id, project, snapshot)
    if actor is None:
        return Rejection(
            kind=AccessErrorKind.NOT_FOUND,
            message=f"User {actor_id} has no access to {project}",
        )
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only admins and owners can revoke invitations",
        )

    invitation = _find_invitation(invitation_id, snapshot, project_id)
    if isinstance(invitation, Rejection):
        return invitation

    change = _transition_change(invitation, InvitationStatus.REVOKED, now)
    if isinstance(change, Rejection):
        return change
    return MutationPlan(
        resource=project,
        base_version=snapshot.version,
        changes=[change],
        description=f"revoke invitation {invitation_id}",
    )


def plan_expire_invitation(
    invitation_id: UUID,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> MutationOutcome:
    """
    Expire one invitation whose expiry time has passed.

    An invitation that is not yet due yields an empty plan.
    """
    invitation = _find_invitation(invitation_id, snapshot)
    if isinstance(invitation, Rejection):
        return invitation

    changes = []
    if invitation.status.is_terminal or invitation.is_overdue(now):
        change = _transition_change(invitation, InvitationStatus.EXPIRED, now)
        if isinstance(change, Rejection):
            return change
        changes.append(change)

    return MutationPlan(
        resource=ResourceRef.project(invitation.project_id),
        base_version=snapshot.version,
        changes=changes,
        description=f"expire invitation {invitation_id}",
    )


def plan_expire_stale_invitations(
    project_id: UUID,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> MutationPlan:
    """Expire every overdue pending invitation of a project in one plan."""
    changes = [
        _transition_change(inv, InvitationStatus.EXPIRED, now)
        for inv in snapshot.invitations
        if inv.project_id == project_id
        and inv.status == InvitationStatus.PENDING
        and inv.is_overdue(now)
    ]
    if changes:
        logger.info(f"Expiring {len(changes)} stale invitations for project {project_id}")
    return MutationPlan(
        resource=ResourceRef.project(project_id),
        base_version=snapshot.version,
        changes=changes,
        description=f"expire stale invitations of project {project_id}",
    )
