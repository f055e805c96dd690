"""
Access resolution: effective project role and the channel it comes from.

A user reaches a project either directly (a ProjectMember record) or
through a team linked to the project. Team-inherited access is always
exactly VIEWER, whatever the user's team role and however many linked
teams they belong to; a direct role always dominates it.

All functions are pure and read only the snapshot they are given, so
resolution is idempotent and safe to run in parallel per project.
"""

from typing import List, Optional, Union
from uuid import UUID

from ..schemas.access import AccessSource, EffectiveAccess
from ..schemas.membership import MembershipSnapshot
from ..schemas.mutation import AccessErrorKind, Rejection
from ..schemas.role import ProjectRole

# Role granted by a team-project link, never escalated.
TEAM_ACCESS_ROLE = ProjectRole.VIEWER


def has_team_access(user_id: UUID, project_id: UUID, snapshot: MembershipSnapshot) -> bool:
    """Check whether any team linked to the project has the user as a member."""
    for link in snapshot.links_for_project(project_id):
        if snapshot.team_member(link.team_id, user_id) is not None:
            return True
    return False


def resolve_access(
    user_id: UUID,
    project_id: UUID,
    snapshot: MembershipSnapshot,
) -> Union[EffectiveAccess, Rejection]:
    """
    Resolve a user's effective access to a project.

    Args:
        user_id: The user's ID
        project_id: The project's ID
        snapshot: Membership snapshot covering the project

    Returns:
        EffectiveAccess, or a NotFound rejection if the user has no path
        to the project.
    """
    direct = snapshot.project_member(project_id, user_id)
    via_team = has_team_access(user_id, project_id, snapshot)

    if direct is None and not via_team:
        return Rejection(
            kind=AccessErrorKind.NOT_FOUND,
            message=f"User {user_id} has no access to project {project_id}",
        )

    if direct is not None and via_team:
        source, role = AccessSource.BOTH, direct.role
    elif direct is not None:
        source, role = AccessSource.DIRECT, direct.role
    else:
        source, role = AccessSource.TEAM, TEAM_ACCESS_ROLE

    return EffectiveAccess(
        project_id=project_id,
        user_id=user_id,
        role=role,
        source=source,
    )


def get_effective_role(
    user_id: UUID,
    project_id: UUID,
    snapshot: MembershipSnapshot,
) -> Optional[ProjectRole]:
    """Effective project role, or None when the user has no access."""
    access = resolve_access(user_id, project_id, snapshot)
    return access.role if isinstance(access, EffectiveAccess) else None


def resolve_access_for_all_projects(
    user_id: UUID,
    snapshot: MembershipSnapshot,
) -> List[EffectiveAccess]:
    """
    Resolve the user's access to every project in the snapshot.

    Equivalent to calling resolve_access per project and keeping the
    successes; used to enrich a project list.
    """
    results = []
    for project_id in snapshot.project_ids():
        access = resolve_access(user_id, project_id, snapshot)
        if isinstance(access, EffectiveAccess):
            results.append(access)
    return results


def list_effective_members(project_id: UUID, snapshot: MembershipSnapshot) -> List[EffectiveAccess]:
    """
    Unified member list of a project: direct members and team-inherited viewers.

    Each user appears once. Ordered by role priority (highest first), then
    direct before team-only, then user ID for a stable order.
    """
    user_ids = {m.user_id for m in snapshot.project_members if m.project_id == project_id}
    for link in snapshot.links_for_project(project_id):
        user_ids.update(m.user_id for m in snapshot.team_members if m.team_id == link.team_id)

    members = []
    for user_id in user_ids:
        access = resolve_access(user_id, project_id, snapshot)
        if isinstance(access, EffectiveAccess):
            members.append(access)

    return sorted(
        members,
        key=lambda a: (-a.role.priority, a.source == AccessSource.TEAM, str(a.user_id)),
    )
