"""Exceptions for caller contract violations.

Policy refusals are returned as Rejection values. These exceptions are
raised only when a caller persists a plan against data that changed
underneath it, or when a commit would break the owner invariant.
"""

from typing import Optional

from ..schemas.membership import ResourceRef


class MembershipStoreError(Exception):
    """Base class for membership persistence errors."""


class StaleSnapshotError(MembershipStoreError):
    """
    The plan was computed from a snapshot that is no longer current.

    Either the resource version moved on (actual holds the current
    version) or a record the plan touches no longer matches its before
    image (detail names the record).
    """

    def __init__(
        self,
        resource: ResourceRef,
        expected: Optional[int],
        actual: Optional[int] = None,
        detail: Optional[str] = None,
    ):
        self.resource = resource
        self.expected = expected
        self.actual = actual
        self.detail = detail
        if detail is not None:
            message = f"Membership of {resource} changed since version {expected}: {detail}"
        else:
            message = f"Membership of {resource} changed (expected version {expected}, found {actual})"
        super().__init__(message)


class OwnerInvariantError(MembershipStoreError):
    """Applying the plan would leave the resource without an owner."""

    def __init__(self, resource: ResourceRef):
        self.resource = resource
        super().__init__(f"{resource} would be left without an owner")
