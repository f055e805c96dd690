"""Pydantic schemas for project invitations."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .role import ProjectRole


class InvitationStatus(str, Enum):
    """Invitation status enumeration. Everything but PENDING is terminal."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REVOKED = "REVOKED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not InvitationStatus.PENDING


class ProjectInvitation(BaseModel):
    """
    Invitation of an email address to a project with a role.

    Attributes:
        id: Unique invitation identifier
        project_id: Project the invitee will join
        email: Invited email address
        role: Role granted on acceptance
        status: Current lifecycle state
        invited_by: User who created the invitation
        created_at: Creation timestamp
        expires_at: After this instant the invitation can only expire
        accepted_at: Set when the invitation is accepted
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: UUID = Field(..., description="Unique invitation identifier")
    project_id: UUID = Field(..., description="ID of the project")
    email: str = Field(..., description="Invited email address")
    role: ProjectRole = Field(..., description="Role granted on acceptance")
    status: InvitationStatus = Field(InvitationStatus.PENDING, description="Current status")
    invited_by: Optional[UUID] = Field(None, description="ID of the inviting user")
    created_at: datetime = Field(..., description="When the invitation was created")
    expires_at: Optional[datetime] = Field(None, description="When the invitation expires")
    accepted_at: Optional[datetime] = Field(None, description="When the invitation was accepted")

    def is_overdue(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InvitationCreate(BaseModel):
    """Schema for creating a new invitation."""

    email: EmailStr = Field(
        ...,
        description="Email address to invite",
        examples=["invitee@example.com"],
    )
    role: ProjectRole = Field(
        ProjectRole.VIEWER,
        description="Role to assign to the invitee",
        examples=["MEMBER", "VIEWER"],
    )
