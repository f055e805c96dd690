"""Pydantic schemas for membership records and read-only snapshots.

A MembershipSnapshot is the only input the policy engine reads. It is
immutable; mutations produce a new snapshot (see membership_service).
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .invitation import ProjectInvitation
from .role import ProjectRole, RoleScope, TeamRole


class ResourceRef(BaseModel):
    """A project or a team, the unit that owns members."""

    model_config = ConfigDict(frozen=True)

    scope: RoleScope = Field(..., description="Kind of resource")
    id: UUID = Field(..., description="Project or team ID")

    @classmethod
    def project(cls, project_id: UUID) -> "ResourceRef":
        return cls(scope=RoleScope.PROJECT, id=project_id)

    @classmethod
    def team(cls, team_id: UUID) -> "ResourceRef":
        return cls(scope=RoleScope.TEAM, id=team_id)

    def __str__(self) -> str:
        return f"{self.scope.value}:{self.id}"


class UserSummary(BaseModel):
    """Identity supplied by the external identity provider."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    display_name: Optional[str] = Field(None, description="User's display name")


class ProjectMember(BaseModel):
    """Direct membership of a user in a project."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    project_id: UUID = Field(..., description="ID of the project")
    user_id: UUID = Field(..., description="ID of the member user")
    role: ProjectRole = Field(..., description="Role of the member in the project")
    joined_at: Optional[datetime] = Field(None, description="When the membership was created")

    @property
    def resource(self) -> ResourceRef:
        return ResourceRef.project(self.project_id)


class TeamMember(BaseModel):
    """Membership of a user in a team."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    team_id: UUID = Field(..., description="ID of the team")
    user_id: UUID = Field(..., description="ID of the member user")
    role: TeamRole = Field(..., description="Role of the member in the team")
    joined_at: Optional[datetime] = Field(None, description="When the membership was created")

    @property
    def resource(self) -> ResourceRef:
        return ResourceRef.team(self.team_id)


class TeamProjectLink(BaseModel):
    """A team linked to a project; its members get implicit VIEWER access."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    team_id: UUID = Field(..., description="ID of the linked team")
    project_id: UUID = Field(..., description="ID of the linked project")


MemberRecord = Union[ProjectMember, TeamMember]


class RecordType(str, Enum):
    """Record collections a MutationPlan can touch."""

    PROJECT_MEMBER = "project_member"
    TEAM_MEMBER = "team_member"
    TEAM_PROJECT_LINK = "team_project_link"
    INVITATION = "invitation"


class MembershipSnapshot(BaseModel):
    """
    Read-only view of the membership store for one or more resources.

    Attributes:
        project_members: Direct project memberships
        team_members: Team memberships
        team_project_links: Team-project associations
        invitations: Project invitations (any status)
        version: Version of the resource the snapshot was read for; the
            store rejects a plan whose base version no longer matches
        team_versions: (team_id, version) pairs of the teams whose members
            the snapshot includes
    """

    model_config = ConfigDict(frozen=True)

    project_members: Tuple[ProjectMember, ...] = ()
    team_members: Tuple[TeamMember, ...] = ()
    team_project_links: Tuple[TeamProjectLink, ...] = ()
    invitations: Tuple[ProjectInvitation, ...] = ()
    version: Optional[int] = None
    team_versions: Tuple[Tuple[UUID, int], ...] = ()

    def project_member(self, project_id: UUID, user_id: UUID) -> Optional[ProjectMember]:
        for member in self.project_members:
            if member.project_id == project_id and member.user_id == user_id:
                return member
        return None

    def team_version(self, team_id: UUID) -> Optional[int]:
        for known_id, version in self.team_versions:
            if known_id == team_id:
                return version
        return None

    def team_member(self, team_id: UUID, user_id: UUID) -> Optional[TeamMember]:
        for member in self.team_members:
            if member.team_id == team_id and member.user_id == user_id:
                return member
        return None

    def members_of(self, resource: ResourceRef) -> List[MemberRecord]:
        """All direct member records of a project or team."""
        if resource.scope == RoleScope.PROJECT:
            return [m for m in self.project_members if m.project_id == resource.id]
        return [m for m in self.team_members if m.team_id == resource.id]

    def member_of(self, resource: ResourceRef, user_id: UUID) -> Optional[MemberRecord]:
        if resource.scope == RoleScope.PROJECT:
            return self.project_member(resource.id, user_id)
        return self.team_member(resource.id, user_id)

    def links_for_project(self, project_id: UUID) -> List[TeamProjectLink]:
        return [link for link in self.team_project_links if link.project_id == project_id]

    def link(self, team_id: UUID, project_id: UUID) -> Optional[TeamProjectLink]:
        for link in self.team_project_links:
            if link.team_id == team_id and link.project_id == project_id:
                return link
        return None

    def invitation(self, invitation_id: UUID) -> Optional[ProjectInvitation]:
        for invitation in self.invitations:
            if invitation.id == invitation_id:
                return invitation
        return None

    def project_ids(self) -> List[UUID]:
        """Every project referenced by a direct membership or a team link."""
        seen: dict = {}
        for member in self.project_members:
            seen.setdefault(member.project_id, None)
        for link in self.team_project_links:
            seen.setdefault(link.project_id, None)
        return list(seen)


class MemberAdd(BaseModel):
    """Request body for directly adding a member."""

    user_id: UUID = Field(..., description="ID of the user being added")
    role: str = Field(..., description="Role to grant", examples=["MEMBER", "TEAM_MEMBER"])


class BulkMemberAdd(BaseModel):
    """Request body for adding several members at once."""

    members: List[MemberAdd] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Users to add, each with the role to grant",
    )


class MemberRoleUpdate(BaseModel):
    """Request body for changing a member's role."""

    role: str = Field(..., description="New role for the member", examples=["ADMIN"])


class OwnershipTransfer(BaseModel):
    """Request body for transferring ownership."""

    new_owner_id: UUID = Field(..., description="ID of the member who becomes owner")


class MemberActions(BaseModel):
    """What an actor may do to one target member; drives rendered controls."""

    can_view: bool = False
    can_edit_role: bool = False
    can_remove: bool = False
    can_transfer_ownership_to: bool = False
    grantable_roles: List[str] = Field(default_factory=list)
