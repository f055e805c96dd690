"""Pydantic schemas package for engine data and request/response validation."""

from .access import (
    AccessSource,
    EffectiveAccess,
    EffectiveMemberView,
)
from .invitation import (
    InvitationCreate,
    InvitationStatus,
    ProjectInvitation,
)
from .membership import (
    MemberActions,
    MemberAdd,
    MemberRoleUpdate,
    MembershipSnapshot,
    OwnershipTransfer,
    ProjectMember,
    RecordType,
    ResourceRef,
    TeamMember,
    TeamProjectLink,
    UserSummary,
)
from .mutation import (
    AccessErrorKind,
    ChangeKind,
    MutationPlan,
    RecordChange,
    Rejection,
)
from .project import (
    ProjectResponse,
    ResourceCreate,
    TeamMemberView,
    TeamResponse,
)
from .role import (
    ProjectRole,
    RoleScope,
    TeamRole,
    parse_role,
)

__all__ = [
    # Access schemas
    "AccessSource",
    "EffectiveAccess",
    "EffectiveMemberView",
    # Invitation schemas
    "InvitationCreate",
    "InvitationStatus",
    "ProjectInvitation",
    # Membership schemas
    "MemberActions",
    "MemberAdd",
    "MemberRoleUpdate",
    "MembershipSnapshot",
    "OwnershipTransfer",
    "ProjectMember",
    "RecordType",
    "ResourceRef",
    "TeamMember",
    "TeamProjectLink",
    "UserSummary",
    # Mutation schemas
    "AccessErrorKind",
    "ChangeKind",
    "MutationPlan",
    "RecordChange",
    "Rejection",
    # Project and team schemas
    "ProjectResponse",
    "ResourceCreate",
    "TeamMemberView",
    "TeamResponse",
    # Roles
    "ProjectRole",
    "RoleScope",
    "TeamRole",
    "parse_role",
]
