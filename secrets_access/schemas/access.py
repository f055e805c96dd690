"""Pydantic schemas for resolved project access."""

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .membership import MemberActions
from .role import ProjectRole


class AccessSource(str, Enum):
    """How a user's project role was derived. Never persisted."""

    DIRECT = "DIRECT"
    TEAM = "TEAM"
    BOTH = "BOTH"


class EffectiveAccess(BaseModel):
    """Resolved access of one user to one project."""

    model_config = ConfigDict(frozen=True)

    project_id: UUID = Field(..., description="ID of the project")
    user_id: UUID = Field(..., description="ID of the user")
    role: ProjectRole = Field(..., description="Effective project role")
    source: AccessSource = Field(..., description="Channel the role comes from")

    @property
    def is_direct(self) -> bool:
        return self.source != AccessSource.TEAM


class EffectiveMemberView(EffectiveAccess):
    """Effective access of a project member plus what the caller may do to them."""

    actions: Optional[MemberActions] = Field(
        None,
        description="Actions the requesting user may perform on this member",
    )
