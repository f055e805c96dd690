"""Permission predicates for membership management.

These checks are the single source of truth for what an actor may do to
another member of a project or team. They are pure functions over roles
and owner counts, shared by the HTTP layer, the mutation workflow and
any client that decides which controls to render.

Permission Model (project / team):
- OWNER / TEAM_OWNER: Manage members, change any role, transfer ownership
- ADMIN / TEAM_ADMIN: Manage non-owner members, grant roles up to their own
- MEMBER, VIEWER / TEAM_MEMBER: Read-only with respect to membership

Owner Rules:
- Only an owner may change or remove another owner
- The sole remaining owner can never be removed, demoted or leave
- Nobody edits or removes themselves through the privileged path; leaving
  and transferring ownership have dedicated operations
"""

from typing import Iterable, List, Optional

from ..schemas.membership import MemberActions
from ..schemas.mutation import AccessErrorKind, Rejection
from ..schemas.role import AnyRole, ProjectRole, RoleHolder, TeamRole

MANAGER_ROLES = frozenset(
    {
        ProjectRole.OWNER,
        ProjectRole.ADMIN,
        TeamRole.TEAM_OWNER,
        TeamRole.TEAM_ADMIN,
    }
)


def _is_direct(holder: RoleHolder) -> bool:
    # Team-inherited access is not a member record and cannot be mutated
    return getattr(holder, "is_direct", True)


def count_owners(members: Iterable[RoleHolder]) -> int:
    """Count members holding the top role of their hierarchy."""
    return sum(1 for member in members if member.role.is_top)


def can_manage_members(role: Optional[AnyRole]) -> bool:
    """
    Check if a role may manage membership of its resource.

    Args:
        role: The actor's project or team role, None for no access

    Returns:
        True for OWNER/ADMIN and TEAM_OWNER/TEAM_ADMIN, False otherwise.
    """
    return role in MANAGER_ROLES


def can_grant_role(actor_role: Optional[AnyRole], requested_role: AnyRole) -> bool:
    """
    Check if an actor may grant a role, by invitation, direct add or role change.

    Owners may grant any role of their hierarchy. Admins may grant roles
    up to and including their own, never the top role.

    Raises:
        TypeError: If the two roles belong to different hierarchies
    """
    if actor_role is not None and type(actor_role) is not type(requested_role):
        raise TypeError(
            f"Cannot grant {type(requested_role).__name__} with a {type(actor_role).__name__}"
        )
    if not can_manage_members(actor_role):
        return False
    if actor_role.is_top:
        return True
    if requested_role.is_top:
        return False
    return actor_role.at_least(requested_role)


def grantable_roles(actor_role: Optional[AnyRole], hierarchy: type = ProjectRole) -> List[AnyRole]:
    """Roles the actor may grant, highest first."""
    if actor_role is not None:
        hierarchy = type(actor_role)
    return [role for role in hierarchy.roles_descending() if can_grant_role(actor_role, role)]


def can_edit_member_role(actor: RoleHolder, target: RoleHolder, owner_count: int) -> bool:
    """
    Check if the actor may change the target's role.

    Args:
        actor: The acting member
        target: The member whose role would change
        owner_count: Number of owners currently on the resource

    Returns:
        False on self-edit, when the actor cannot manage members, or when
        the target is an owner and the actor is not. True otherwise.
    """
    if actor.user_id == target.user_id:
        return False
    if not can_manage_members(actor.role):
        return False
    if target.role.is_top and not actor.role.is_top:
        return False
    return True


def can_remove_member(actor: RoleHolder, target: RoleHolder, owner_count: int) -> bool:
    """
    Check if the actor may remove the target from the resource.

    Same rules as can_edit_member_role, and the sole remaining owner can
    never be removed regardless of who asks.
    """
    if target.role.is_top and owner_count <= 1:
        return False
    return can_edit_member_role(actor, target, owner_count)


def can_leave_resource(actor: RoleHolder, owner_count: int) -> bool:
    """The sole owner must transfer ownership before leaving."""
    return not (actor.role.is_top and owner_count <= 1)


def can_transfer_ownership(actor: RoleHolder) -> bool:
    return actor.role.is_top


def check_role_change(
    actor: RoleHolder,
    target: RoleHolder,
    new_role: AnyRole,
    owner_count: int,
) -> Optional[Rejection]:
    """
    Explain why a role change is refused.

    Returns:
        None when the change is allowed, otherwise the single Rejection
        that applies. Checks run in the same order as check_removal:
        self, manage, sole owner, owner target, then the grant rule.
    """
    if actor.user_id == target.user_id:
        return Rejection(
            kind=AccessErrorKind.SELF_MUTATION_FORBIDDEN,
            message="You cannot change your own role.",
        )
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners and admins can change member roles.",
        )
    if target.role.is_top and not new_role.is_top and owner_count <= 1:
        return Rejection(
            kind=AccessErrorKind.SOLE_OWNER_VIOLATION,
            message="Cannot change role. This is the last owner.",
        )
    if target.role.is_top and not actor.role.is_top:
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners can change the role of another owner.",
        )
    if not can_grant_role(actor.role, new_role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message=f"You cannot grant the {new_role.display_name} role.",
        )
    return None


def check_removal(actor: RoleHolder, target: RoleHolder, owner_count: int) -> Optional[Rejection]:
    """
    Explain why removing the target is refused, or None when allowed.

    Checked in order: self, manage, sole owner, owner target.
    """
    if actor.user_id == target.user_id:
        return Rejection(
            kind=AccessErrorKind.SELF_MUTATION_FORBIDDEN,
            message="Use the leave operation to remove yourself.",
        )
    if not can_manage_members(actor.role):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners and admins can remove members.",
        )
    if target.role.is_top and owner_count <= 1:
        return Rejection(
            kind=AccessErrorKind.SOLE_OWNER_VIOLATION,
            message="Cannot remove the last owner.",
        )
    if target.role.is_top and not actor.role.is_top:
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners can remove another owner.",
        )
    return None


def check_leave(actor: RoleHolder, owner_count: int) -> Optional[Rejection]:
    if not can_leave_resource(actor, owner_count):
        return Rejection(
            kind=AccessErrorKind.SOLE_OWNER_VIOLATION,
            message="You are the only owner. Transfer ownership before leaving.",
        )
    return None


def check_transfer(actor: RoleHolder, target: RoleHolder) -> Optional[Rejection]:
    if not can_transfer_ownership(actor):
        return Rejection(
            kind=AccessErrorKind.UNAUTHORIZED,
            message="Only owners can transfer ownership.",
        )
    if actor.user_id == target.user_id:
        return Rejection(
            kind=AccessErrorKind.SELF_MUTATION_FORBIDDEN,
            message="You already own this resource.",
        )
    return None


def member_actions(
    actor: Optional[RoleHolder],
    target: RoleHolder,
    owner_count: int,
) -> MemberActions:
    """
    Everything the actor may do to one target member.

    Args:
        actor: The requesting user's membership or effective access, None
            when they have no access
        target: A member record or effective access of another user
        owner_count: Number of owners currently on the resource

    Returns:
        MemberActions; team-inherited targets can be viewed but not mutated.
    """
    if actor is None:
        return MemberActions()

    mutable = _is_direct(actor) and _is_direct(target)
    can_edit = mutable and can_edit_member_role(actor, target, owner_count)
    grantable = []
    if can_edit:
        grantable = [
            role.value
            for role in grantable_roles(actor.role)
            if role != target.role
        ]

    return MemberActions(
        can_view=True,
        can_edit_role=can_edit,
        can_remove=mutable and can_remove_member(actor, target, owner_count),
        can_transfer_ownership_to=(
            mutable
            and can_transfer_ownership(actor)
            and actor.user_id != target.user_id
        ),
        grantable_roles=grantable,
    )
