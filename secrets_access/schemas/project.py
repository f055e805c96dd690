"""Pydantic schemas for projects and teams."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .membership import MemberActions, TeamMember
from .mutation import EntryRejection


class ResourceCreate(BaseModel):
    """Schema for creating a project or a team."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Name of the project or team",
        examples=["Payments API"],
    )


class ProjectResponse(BaseModel):
    """Schema for project response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique project identifier")
    name: str = Field(..., description="Project name")
    version: int = Field(..., description="Membership version")
    created_at: datetime = Field(..., description="Creation timestamp")


class TeamResponse(BaseModel):
    """Schema for team response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique team identifier")
    name: str = Field(..., description="Team name")
    version: int = Field(..., description="Membership version")
    created_at: datetime = Field(..., description="Creation timestamp")


class TeamMemberView(TeamMember):
    """Team member plus what the requesting user may do to them."""

    actions: Optional[MemberActions] = Field(
        None,
        description="Actions the requesting user may perform on this member",
    )


class BulkAddResponse(BaseModel):
    """Result of a bulk add: members created and entries that were skipped."""

    added: List[TeamMember] = Field(default_factory=list, description="Members that were added")
    rejected: List[EntryRejection] = Field(default_factory=list, description="Entries that were refused")
