"""Business logic services."""

from .access_resolver import (
    get_effective_role,
    list_effective_members,
    resolve_access,
    resolve_access_for_all_projects,
)
from .auth_service import (
    create_access_token,
    decode_access_token,
    get_current_user,
)
from .exceptions import (
    MembershipStoreError,
    OwnerInvariantError,
    StaleSnapshotError,
)
from .invitation_service import (
    list_pending_invitations,
    plan_accept_invitation,
    plan_decline_invitation,
    plan_expire_invitation,
    plan_expire_stale_invitations,
    plan_invitation,
    plan_revoke_invitation,
)
from .membership_service import (
    apply_plan,
    plan_add_member,
    plan_leave,
    plan_link_team,
    plan_ownership_transfer,
    plan_removal,
    plan_role_change,
    plan_unlink_team,
)
from .membership_store import (
    MembershipStore,
    get_membership_store,
)
from .permission_service import (
    can_edit_member_role,
    can_grant_role,
    can_leave_resource,
    can_manage_members,
    can_remove_member,
    can_transfer_ownership,
    count_owners,
    member_actions,
)

__all__ = [
    # Access resolver
    "get_effective_role",
    "list_effective_members",
    "resolve_access",
    "resolve_access_for_all_projects",
    # Auth service
    "create_access_token",
    "decode_access_token",
    "get_current_user",
    # Exceptions
    "MembershipStoreError",
    "OwnerInvariantError",
    "StaleSnapshotError",
    # Invitation service
    "list_pending_invitations",
    "plan_accept_invitation",
    "plan_decline_invitation",
    "plan_expire_invitation",
    "plan_expire_stale_invitations",
    "plan_invitation",
    "plan_revoke_invitation",
    # Membership service
    "apply_plan",
    "plan_add_member",
    "plan_leave",
    "plan_link_team",
    "plan_ownership_transfer",
    "plan_removal",
    "plan_role_change",
    "plan_unlink_team",
    # Membership store
    "MembershipStore",
    "get_membership_store",
    # Permission service
    "can_edit_member_role",
    "can_grant_role",
    "can_leave_resource",
    "can_manage_members",
    "can_remove_member",
    "can_transfer_ownership",
    "count_owners",
    "member_actions",
]
