"""
Membership mutation workflow for projects and teams.

Every operation takes an explicit snapshot and returns either a
MutationPlan (the record changes to persist) or a Rejection. Nothing here
touches shared state: the caller persists the plan atomically (see
MembershipStore.apply) and refreshes its snapshot afterwards.

State machine per membership record:

    ACTIVE --role change--------> ACTIVE (new role)
    ACTIVE --remove / leave-----> REMOVED (record deleted)
    ACTIVE --ownership transfer-> actor steps down to ADMIN / TEAM_ADMIN,
                                  target becomes OWNER / TEAM_OWNER

After any committed plan the resource keeps at least one owner.
apply_plan enforces that for in-memory snapshots; the store re-checks it
before commit.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple, Type, Union
from uuid import UUID

from pydantic import BaseModel

from ..schemas.access import EffectiveAccess
from ..schemas.membership import (
    MembershipSnapshot,
    ProjectMember,
    RecordType,
    ResourceRef,
    TeamMember,
    TeamProjectLink,
)
from ..schemas.invitation import ProjectInvitation
from ..schemas.mutation import (
    AccessErrorKind,
    BulkMutationPlan,
    ChangeKind,
    EntryRejection,
    MutationPlan,
    RecordChange,
    Rejection,
    VersionGuard,
)
from ..schemas.role import AnyRole, RoleHolder, RoleScope, role_type_for
from .access_resolver import resolve_access
from .exceptions import OwnerInvariantError, StaleSnapshotError
from .permission_service import (
    can_grant_role,
    can_manage_members,
    check_leave,
    check_removal,
    check_role_change,
    check_transfer,
    count_owners,
)

logger = logging.getLogger(__name__)

MutationOutcome = Union[MutationPlan, Rejection]

RECORD_MODELS: Dict[RecordType, Type[BaseModel]] = {
    RecordType.PROJECT_MEMBER: ProjectMember,
    RecordType.TEAM_MEMBER: TeamMember,
    RecordType.TEAM_PROJECT_LINK: TeamProjectLink,
    RecordType.INVITATION: ProjectInvitation,
}


# ============================================================================
# Record helpers
# ============================================================================


def record_key(record_type: RecordType, record: BaseModel) -> Tuple[UUID, ...]:
    """Natural key of a record within its collection."""
    if record_type == RecordType.PROJECT_MEMBER:
        return (record.project_id, record.user_id)
    if record_type == RecordType.TEAM_MEMBER:
        return (record.team_id, record.user_id)
    if record_type == RecordType.TEAM_PROJECT_LINK:
        return (record.team_id, record.project_id)
    return (record.id,)


def member_record_type(resource: ResourceRef) -> RecordType:
    if resource.scope == RoleScope.PROJECT:
        return RecordType.PROJECT_MEMBER
    return RecordType.TEAM_MEMBER


def create_change(record_type: RecordType, record: BaseModel) -> RecordChange:
    return RecordChange(
        kind=ChangeKind.CREATE,
        record_type=record_type,
        key=record_key(record_type, record),
        after=record.model_dump(),
    )


def update_change(record_type: RecordType, record: BaseModel, **fields) -> RecordChange:
    updated = record.model_copy(update=fields)
    return RecordChange(
        kind=ChangeKind.UPDATE,
        record_type=record_type,
        key=record_key(record_type, record),
        before=record.model_dump(),
        after=updated.model_dump(),
    )


def delete_change(record_type: RecordType, record: BaseModel) -> RecordChange:
    return RecordChange(
        kind=ChangeKind.DELETE,
        record_type=record_type,
        key=record_key(record_type, record),
        before=record.model_dump(),
    )


def _require_hierarchy(resource: ResourceRef, role: AnyRole) -> None:
    expected = role_type_for(resource.scope)
    if type(role) is not expected:
        raise TypeError(
            f"{type(role).__name__} cannot be used on a {resource.scope.value}; "
            f"expected {expected.__name__}"
        )


def resolve_actor(
    actor_id: UUID,
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
) -> Optional[RoleHolder]:
    """
    The actor's standing on a resource.

    For projects this is the effective access, so team-inherited viewers
    are recognised. For teams it is the team membership record.
    """
    if resource.scope == RoleScope.PROJECT:
        access = resolve_access(actor_id, resource.id, snapshot)
        return access if isinstance(access, EffectiveAccess) else None
    return snapshot.team_member(resource.id, actor_id)


def _no_access(actor_id: UUID, resource: ResourceRef) -> Rejection:
    return Rejection(
        kind=AccessErrorKind.NOT_FOUND,
        message=f"User {actor_id} has no access to {resource}",
    )


def _member_not_found(user_id: UUID, resource: ResourceRef) -> Rejection:
    return Rejection(
        kind=AccessErrorKind.NOT_FOUND,
        message=f"Member with user ID {user_id} not found in {resource}",
    )


def _plan(
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
    changes: List[RecordChange],
    description: str,
    guards: Sequence[VersionGuard] = (),
) -> MutationPlan:
    return MutationPlan(
        resource=resource,
        base_version=snapshot.version,
        changes=changes,
        guards=list(guards),
        description=description,
    )


# ============================================================================
# Membership operations
# ============================================================================


def plan_add_member(
    actor_id: UUID,
    user_id: UUID,
    role: AnyRole,
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> MutationOutcome:
    """
    Directly add a user to a project or team.

    Args:
        actor_id: User performing the add
        user_id: User being added
        role: Role to grant; must belong to the resource's hierarchy
        resource: Project or team
        snapshot: Membership snapshot of the resource
        now: Timestamp recorded as joined_at

    Returns:
        A plan creating one member record, or a Rejection.
    """
    _require_hierarchy(resource, role)
    actor = resolve_actor(actor_id, resource, snapshot)
    if actor is None:
        return _no_access(actor_id, resource)
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners and admins can add members.",
        )
    if not can_grant_role(actor.role, role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message=f"You cannot grant the {role.display_name} role.",
        )
    if snapshot.member_of(resource, user_id) is not None:
        return Rejection(
            kind=AccessErrorKind.ALREADY_MEMBER,
            message=f"User {user_id} is already a member of {resource}",
        )

    if resource.scope == RoleScope.PROJECT:
        record = ProjectMember(project_id=resource.id, user_id=user_id, role=role, joined_at=now)
    else:
        record = TeamMember(team_id=resource.id, user_id=user_id, role=role, joined_at=now)

    return _plan(
        resource,
        snapshot,
        [create_change(member_record_type(resource), record)],
        f"add {user_id} to {resource} as {role.value}",
    )


def plan_bulk_add_members(
    actor_id: UUID,
    entries: Sequence[Tuple[UUID, AnyRole]],
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
    now: datetime,
) -> Union[BulkMutationPlan, Rejection]:
    """
    Add several users in one request.

    Each entry goes through the same checks as plan_add_member, against a
    snapshot that already contains the entries accepted before it, so a
    user listed twice is added once. Refused entries are reported on the
    plan instead of failing the request.

    Args:
        actor_id: User performing the add
        entries: (user_id, role) pairs in request order
        resource: Project or team
        snapshot: Membership snapshot of the resource
        now: Timestamp recorded as joined_at

    Returns:
        A BulkMutationPlan with the accepted entries' changes and the
        refused entries, or a Rejection if the actor cannot add members at
        all or every entry was refused.
    """
    actor = resolve_actor(actor_id, resource, snapshot)
    if actor is None:
        return _no_access(actor_id, resource)
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners and admins can add members.",
        )

    working = snapshot
    changes: List[RecordChange] = []
    rejected: List[EntryRejection] = []
    for user_id, role in entries:
        outcome = plan_add_member(actor_id, user_id, role, resource, working, now)
        if not outcome.ok:
            rejected.append(EntryRejection(user_id=user_id, error=outcome.kind, message=outcome.message))
            continue
        changes.extend(outcome.changes)
        working = apply_plan(working, outcome)

    if rejected and not changes:
        return Rejection(
            kind=rejected[0].error,
            message="No members were added: " + "; ".join(entry.message for entry in rejected),
        )

    logger.info(
        f"Bulk add to {resource} by {actor_id}: {len(changes)} added, {len(rejected)} rejected"
    )
    return BulkMutationPlan(
        resource=resource,
        base_version=snapshot.version,
        changes=changes,
        rejected=rejected,
        description=f"bulk add {len(changes)} members to {resource}",
    )


def plan_role_change(
    actor_id: UUID,
    target_user_id: UUID,
    new_role: AnyRole,
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
) -> MutationOutcome:
    """
    Change a member's role.

    A request for the role the member already holds yields an empty plan.
    """
    _require_hierarchy(resource, new_role)
    actor = resolve_actor(actor_id, resource, snapshot)
    if actor is None:
        return _no_access(actor_id, resource)

    target = snapshot.member_of(resource, target_user_id)
    if target is None:
        return _member_not_found(target_user_id, resource)

    owner_count = count_owners(snapshot.members_of(resource))
    rejection = check_role_change(actor, target, new_role, owner_count)
    if rejection is not None:
        return rejection

    changes = []
    if target.role != new_role:
        changes.append(update_change(member_record_type(resource), target, role=new_role))

    return _plan(
        resource,
        snapshot,
        changes,
        f"change role of {target_user_id} in {resource} from {target.role.value} to {new_role.value}",
    )


def plan_removal(
    actor_id: UUID,
    target_user_id: UUID,
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
) -> MutationOutcome:
    """Remove another member from a project or team."""
    actor = resolve_actor(actor_id, resource, snapshot)
    if actor is None:
        return _no_access(actor_id, resource)

    target = snapshot.member_of(resource, target_user_id)
    if target is None:
        return _member_not_found(target_user_id, resource)

    owner_count = count_owners(snapshot.members_of(resource))
    rejection = check_removal(actor, target, owner_count)
    if rejection is not None:
        return rejection

    return _plan(
        resource,
        snapshot,
        [delete_change(member_record_type(resource), target)],
        f"remove {target_user_id} from {resource}",
    )


def plan_leave(user_id: UUID, resource: ResourceRef, snapshot: MembershipSnapshot) -> MutationOutcome:
    """
    Self-service leave. Only direct members can leave; team-inherited
    access ends by leaving the team.
    """
    member = snapshot.member_of(resource, user_id)
    if member is None:
        return _member_not_found(user_id, resource)

    rejection = check_leave(member, count_owners(snapshot.members_of(resource)))
    if rejection is not None:
        return rejection

    return _plan(
        resource,
        snapshot,
        [delete_change(member_record_type(resource), member)],
        f"{user_id} leaves {resource}",
    )


def plan_ownership_transfer(
    actor_id: UUID,
    new_owner_id: UUID,
    resource: ResourceRef,
    snapshot: MembershipSnapshot,
) -> MutationOutcome:
    """
    Hand ownership from the acting owner to another existing member.

    The plan holds both record updates (actor steps down, target becomes
    owner) and must be committed as one unit. If the target already is an
    owner only the actor's record changes.
    """
    actor = resolve_actor(actor_id, resource, snapshot)
    if actor is None:
        return _no_access(actor_id, resource)

    target = snapshot.member_of(resource, new_owner_id)
    if target is None:
        return _member_not_found(new_owner_id, resource)

    rejection = check_transfer(actor, target)
    if rejection is not None:
        return rejection

    # An owner always holds a direct record
    actor_record = snapshot.member_of(resource, actor_id)
    hierarchy = role_type_for(resource.scope)
    record_type = member_record_type(resource)

    changes = [update_change(record_type, actor_record, role=hierarchy.fallback_after_transfer())]
    if not target.role.is_top:
        changes.append(update_change(record_type, target, role=hierarchy.top()))

    return _plan(
        resource,
        snapshot,
        changes,
        f"transfer ownership of {resource} from {actor_id} to {new_owner_id}",
    )


# ============================================================================
# Team-project links
# ============================================================================


def plan_link_team(
    actor_id: UUID,
    team_id: UUID,
    project_id: UUID,
    snapshot: MembershipSnapshot,
) -> MutationOutcome:
    """
    Link a team to a project, giving its members VIEWER access.

    The actor must manage members on both the project and the team. The
    plan carries the team version it was decided on, so a concurrent
    change to the actor's team role makes the commit fail as stale.
    """
    project = ResourceRef.project(project_id)
    actor = resolve_actor(actor_id, project, snapshot)
    if actor is None:
        return _no_access(actor_id, project)

    team_actor = snapshot.team_member(team_id, actor_id)
    if not can_manage_members(actor.role) or team_actor is None or not can_manage_members(team_actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Linking a team requires managing both the project and the team.",
        )
    if snapshot.link(team_id, project_id) is not None:
        return Rejection(
            kind=AccessErrorKind.ALREADY_MEMBER,
            message=f"Team {team_id} is already linked to project {project_id}",
        )

    link = TeamProjectLink(team_id=team_id, project_id=project_id)
    return _plan(
        project,
        snapshot,
        [create_change(RecordType.TEAM_PROJECT_LINK, link)],
        f"link team {team_id} to project {project_id}",
        guards=[VersionGuard(resource=ResourceRef.team(team_id), version=snapshot.team_version(team_id))],
    )


def plan_unlink_team(
    actor_id: UUID,
    team_id: UUID,
    project_id: UUID,
    snapshot: MembershipSnapshot,
) -> MutationOutcome:
    project = ResourceRef.project(project_id)
    actor = resolve_actor(actor_id, project, snapshot)
    if actor is None:
        return _no_access(actor_id, project)
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only project owners and admins can unlink teams.",
        )

    link = snapshot.link(team_id, project_id)
    if link is None:
        return Rejection(
            kind=AccessErrorKind.NOT_FOUND,
            message=f"Team {team_id} is not linked to project {project_id}",
        )

    return _plan(
        project,
        snapshot,
        [delete_change(RecordType.TEAM_PROJECT_LINK, link)],
        f"unlink team {team_id} from project {project_id}",
    )


# ============================================================================
# Applying plans to snapshots
# ============================================================================


def ensure_owner_invariant(
    before: MembershipSnapshot,
    after: MembershipSnapshot,
    resource: ResourceRef,
) -> None:
    """
    Raise OwnerInvariantError if a resource that had an owner lost all of them.
    """
    had_owner = count_owners(before.members_of(resource)) >= 1
    if had_owner and count_owners(after.members_of(resource)) < 1:
        raise OwnerInvariantError(resource)


def apply_plan(snapshot: MembershipSnapshot, plan: MutationPlan) -> MembershipSnapshot:
    """
    Apply a plan to an in-memory snapshot, all or nothing.

    The input snapshot is never modified. Every change is checked against
    the snapshot contents first; any mismatch aborts the whole plan.

    Raises:
        StaleSnapshotError: If the plan's base version or any "before"
            image does not match the snapshot
        OwnerInvariantError: If the result would leave the resource
            without an owner
    """
    if plan.base_version != snapshot.version:
        raise StaleSnapshotError(plan.resource, plan.base_version, snapshot.version)
    for guard in plan.guards:
        if snapshot.team_version(guard.resource.id) != guard.version:
            raise StaleSnapshotError(guard.resource, guard.version, snapshot.team_version(guard.resource.id))

    collections: Dict[RecordType, List[BaseModel]] = {
        RecordType.PROJECT_MEMBER: list(snapshot.project_members),
        RecordType.TEAM_MEMBER: list(snapshot.team_members),
        RecordType.TEAM_PROJECT_LINK: list(snapshot.team_project_links),
        RecordType.INVITATION: list(snapshot.invitations),
    }

    for change in plan.changes:
        records = collections[change.record_type]
        model = RECORD_MODELS[change.record_type]
        index = next(
            (i for i, r in enumerate(records) if record_key(change.record_type, r) == tuple(change.key)),
            None,
        )

        record = f"{change.record_type.value} {tuple(str(part) for part in change.key)}"
        if change.kind == ChangeKind.CREATE:
            if index is not None:
                raise StaleSnapshotError(plan.resource, plan.base_version, detail=f"{record} already exists")
            records.append(model(**change.after))
            continue

        if index is None:
            raise StaleSnapshotError(plan.resource, plan.base_version, detail=f"{record} no longer exists")
        if records[index].model_dump() != change.before:
            raise StaleSnapshotError(plan.resource, plan.base_version, detail=f"{record} was modified")

        if change.kind == ChangeKind.UPDATE:
            records[index] = model(**change.after)
        else:
            del records[index]

    version = None if snapshot.version is None else snapshot.version + 1
    team_versions = snapshot.team_versions
    if plan.resource.scope == RoleScope.TEAM and version is not None:
        team_versions = tuple(
            (team_id, version if team_id == plan.resource.id else team_version)
            for team_id, team_version in team_versions
        )

    result = MembershipSnapshot(
        project_members=tuple(collections[RecordType.PROJECT_MEMBER]),
        team_members=tuple(collections[RecordType.TEAM_MEMBER]),
        team_project_links=tuple(collections[RecordType.TEAM_PROJECT_LINK]),
        invitations=tuple(collections[RecordType.INVITATION]),
        version=version,
        team_versions=team_versions,
    )
    ensure_owner_invariant(snapshot, result, plan.resource)

    logger.debug(f"Applied plan to snapshot: {plan.description} ({len(plan.changes)} changes)")
    return result
