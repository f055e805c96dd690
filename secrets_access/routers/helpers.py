"""Shared helpers for the membership routers.

Translates engine rejections into HTTP errors and wires the store into
FastAPI dependencies.
"""

import logging
from datetime import datetime
from typing import Iterable
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.membership import MembershipSnapshot, ResourceRef
from ..schemas.mutation import AccessErrorKind, MutationPlan, Rejection
from ..schemas.role import AnyRole, parse_role, role_type_for
from ..services.membership_service import MutationOutcome
from ..services.membership_store import MembershipStore, get_membership_store

logger = logging.getLogger(__name__)

REJECTION_STATUS = {
    AccessErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AccessErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    AccessErrorKind.SELF_MUTATION_FORBIDDEN: status.HTTP_400_BAD_REQUEST,
    AccessErrorKind.SOLE_OWNER_VIOLATION: status.HTTP_400_BAD_REQUEST,
    AccessErrorKind.DUPLICATE_INVITATION: status.HTTP_409_CONFLICT,
    AccessErrorKind.INVITATION_ALREADY_RESOLVED: status.HTTP_409_CONFLICT,
    AccessErrorKind.ALREADY_MEMBER: status.HTTP_409_CONFLICT,
}


def utcnow() -> datetime:
    return datetime.utcnow()


async def get_store(db: AsyncSession = Depends(get_db)) -> MembershipStore:
    """FastAPI dependency providing a MembershipStore on the request session."""
    return get_membership_store(db)


def rejection_to_http(rejection: Rejection) -> HTTPException:
    """Map a rejection to the HTTPException the API returns for it."""
    return HTTPException(
        status_code=REJECTION_STATUS[rejection.kind],
        detail={"error": rejection.kind.value, "message": rejection.message},
    )


def raise_if_rejected(outcome: MutationOutcome) -> MutationPlan:
    """Return the plan, or raise the HTTP error for a rejection."""
    if not outcome.ok:
        logger.warning(f"Request rejected ({outcome.kind.value}): {outcome.message}")
        raise rejection_to_http(outcome)
    return outcome


async def commit_outcome(store: MembershipStore, outcome: MutationOutcome) -> MutationPlan:
    """Raise for a rejection, otherwise persist the plan atomically."""
    plan = raise_if_rejected(outcome)
    await store.apply(plan)
    return plan


def parse_role_for(resource: ResourceRef, value: str) -> AnyRole:
    """
    Parse a role from a request body for the resource's hierarchy.

    Raises:
        HTTPException: 400 if the role is unknown or belongs to the other hierarchy
    """
    try:
        role = parse_role(value)
    except ValueError:
        role = None
    expected = role_type_for(resource.scope)
    if not isinstance(role, expected):
        allowed = ", ".join(r.value for r in expected.roles_descending())
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid role '{value}' for a {resource.scope.value}. Must be one of: {allowed}",
        )
    return role


async def project_snapshot_or_404(
    store: MembershipStore,
    project_id: UUID,
    extra_team_ids: Iterable[UUID] = (),
) -> MembershipSnapshot:
    snapshot = await store.load_project_snapshot(project_id, extra_team_ids)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Project with ID {project_id} not found",
        )
    return snapshot


async def team_snapshot_or_404(store: MembershipStore, team_id: UUID) -> MembershipSnapshot:
    snapshot = await store.load_team_snapshot(team_id)
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Team with ID {team_id} not found",
        )
    return snapshot

