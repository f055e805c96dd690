"""Pydantic schemas for engine decisions: rejections and mutation plans.

Policy rejections are values, not exceptions. Every refused operation
carries exactly one AccessErrorKind.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .membership import RecordType, ResourceRef


class AccessErrorKind(str, Enum):
    """Error taxonomy for refused access and mutations."""

    NOT_FOUND = "NotFound"
    UNAUTHORIZED = "Unauthorized"
    SOLE_OWNER_VIOLATION = "SoleOwnerViolation"
    SELF_MUTATION_FORBIDDEN = "SelfMutationForbidden"
    DUPLICATE_INVITATION = "DuplicateInvitation"
    INVITATION_ALREADY_RESOLVED = "InvitationAlreadyResolved"
    ALREADY_MEMBER = "AlreadyMember"


class Rejection(BaseModel):
    """A refused request and the single reason it was refused."""

    model_config = ConfigDict(frozen=True)

    kind: AccessErrorKind = Field(..., description="Error kind")
    message: str = Field("", description="Human readable explanation")

    @property
    def ok(self) -> bool:
        return False


class ChangeKind(str, Enum):
    """Kind of record change in a plan."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RecordChange(BaseModel):
    """
    One proposed change to one record.

    Attributes:
        kind: create, update or delete
        record_type: Which collection the record lives in
        key: Natural key of the record (e.g. project_id + user_id)
        before: Record fields as read from the snapshot (None on create)
        after: Record fields after the change (None on delete)
    """

    model_config = ConfigDict(frozen=True)

    kind: ChangeKind
    record_type: RecordType
    key: Tuple[UUID, ...]
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None


class VersionGuard(BaseModel):
    """
    Version of a second resource the plan depends on.

    The store commits the plan only if that resource is still at this
    version, so a decision based on its membership cannot go stale.
    """

    model_config = ConfigDict(frozen=True)

    resource: ResourceRef
    version: Optional[int] = None


class MutationPlan(BaseModel):
    """
    Record changes the caller must persist as a single atomic unit.

    Attributes:
        resource: Project or team whose version guards the plan
        base_version: Snapshot version the plan was computed from
        changes: Ordered record changes
        guards: Other resources whose versions must be unchanged at commit
        description: Short summary for logs
    """

    model_config = ConfigDict(frozen=True)

    resource: ResourceRef
    base_version: Optional[int] = None
    changes: List[RecordChange] = Field(default_factory=list)
    guards: List[VersionGuard] = Field(default_factory=list)
    description: str = ""

    @property
    def ok(self) -> bool:
        return True

    @property
    def is_empty(self) -> bool:
        return not self.changes


class EntryRejection(BaseModel):
    """Why one entry of a bulk request was skipped."""

    model_config = ConfigDict(frozen=True)

    user_id: UUID = Field(..., description="User the entry was for")
    error: AccessErrorKind = Field(..., description="Error kind")
    message: str = Field("", description="Human readable explanation")


class BulkMutationPlan(MutationPlan):
    """
    A plan built from several independent entries.

    Entries that were refused are listed in rejected; the changes of the
    accepted entries are still committed together.
    """

    rejected: List[EntryRejection] = Field(default_factory=list)
