"""
Persistence for membership snapshots and mutation plans.

The store is the only place that reads or writes membership tables. It
hands out snapshots tagged with the resource version and commits plans
with a compare-and-set on that version, so a plan computed from a
snapshot that changed in the meantime is rejected instead of applied.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple, Type
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .. import models
from ..schemas.invitation import ProjectInvitation
from ..schemas.membership import (
    MembershipSnapshot,
    ProjectMember,
    RecordType,
    ResourceRef,
    TeamMember,
    TeamProjectLink,
)
from ..schemas.mutation import ChangeKind, MutationPlan, RecordChange, VersionGuard
from ..schemas.role import ProjectRole, RoleScope, TeamRole
from .exceptions import OwnerInvariantError, StaleSnapshotError

logger = logging.getLogger(__name__)

# ORM model and natural key columns per record type
_TABLES: Dict[RecordType, Tuple[Type, Tuple[str, ...]]] = {
    RecordType.PROJECT_MEMBER: (models.ProjectMember, ("project_id", "user_id")),
    RecordType.TEAM_MEMBER: (models.TeamMember, ("team_id", "user_id")),
    RecordType.TEAM_PROJECT_LINK: (models.TeamProject, ("team_id", "project_id")),
    RecordType.INVITATION: (models.ProjectInvitation, ("id",)),
}


def _column_value(value):
    return value.value if isinstance(value, Enum) else value


def _column_values(record: dict) -> dict:
    return {key: _column_value(value) for key, value in record.items()}


class MembershipStore:
    """
    Async store over the membership tables of one database session.

    Usage:
        store = MembershipStore(db)
        snapshot = await store.load_project_snapshot(project_id)
        plan = plan_role_change(actor_id, user_id, role, resource, snapshot)
        if plan.ok:
            await store.apply(plan)
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def get_project(self, project_id: UUID) -> Optional[models.Project]:
        return await self.db.get(models.Project, project_id, populate_existing=True)

    async def get_team(self, team_id: UUID) -> Optional[models.Team]:
        return await self.db.get(models.Team, team_id, populate_existing=True)

    async def find_invitation_project(self, invitation_id: UUID) -> Optional[UUID]:
        """Project an invitation belongs to, or None if it does not exist."""
        result = await self.db.execute(
            select(models.ProjectInvitation.project_id).where(models.ProjectInvitation.id == invitation_id)
        )
        return result.scalar_one_or_none()

    async def create_project(self, name: str, owner_id: UUID, now: datetime) -> models.Project:
        """Create a project with its creator as sole owner."""
        project = models.Project(name=name, version=0, created_at=now, updated_at=now)
        self.db.add(project)
        await self.db.flush()
        self.db.add(
            models.ProjectMember(
                project_id=project.id,
                user_id=owner_id,
                role=ProjectRole.OWNER.value,
                joined_at=now,
            )
        )
        await self.db.commit()
        logger.info(f"Project {project.id} created by {owner_id}")
        return project

    async def create_team(self, name: str, owner_id: UUID, now: datetime) -> models.Team:
        """Create a team with its creator as sole team owner."""
        team = models.Team(name=name, version=0, created_at=now, updated_at=now)
        self.db.add(team)
        await self.db.flush()
        self.db.add(
            models.TeamMember(
                team_id=team.id,
                user_id=owner_id,
                role=TeamRole.TEAM_OWNER.value,
                joined_at=now,
            )
        )
        await self.db.commit()
        logger.info(f"Team {team.id} created by {owner_id}")
        return team

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def _team_members(self, team_ids: Iterable[UUID]) -> List[TeamMember]:
        team_ids = list(team_ids)
        if not team_ids:
            return []
        result = await self.db.execute(
            select(models.TeamMember).where(models.TeamMember.team_id.in_(team_ids))
        )
        return [TeamMember.model_validate(row) for row in result.scalars().all()]

    async def _team_versions(self, team_ids: Iterable[UUID]) -> Tuple[Tuple[UUID, int], ...]:
        team_ids = list(team_ids)
        if not team_ids:
            return ()
        result = await self.db.execute(
            select(models.Team.id, models.Team.version).where(models.Team.id.in_(team_ids))
        )
        return tuple((team_id, version) for team_id, version in result.all())

    async def load_project_snapshot(
        self,
        project_id: UUID,
        extra_team_ids: Iterable[UUID] = (),
    ) -> Optional[MembershipSnapshot]:
        """
        Snapshot of one project's membership.

        Args:
            project_id: The project's ID
            extra_team_ids: Teams whose members should be included even
                though they are not linked yet (used when linking a team)

        Returns:
            MembershipSnapshot with direct members, links, members of linked
            teams and invitations, or None if the project does not exist.
        """
        project = await self.get_project(project_id)
        if project is None:
            return None

        members = await self.db.execute(
            select(models.ProjectMember).where(models.ProjectMember.project_id == project_id)
        )
        links = await self.db.execute(
            select(models.TeamProject).where(models.TeamProject.project_id == project_id)
        )
        invitations = await self.db.execute(
            select(models.ProjectInvitation).where(models.ProjectInvitation.project_id == project_id)
        )

        link_records = [TeamProjectLink.model_validate(row) for row in links.scalars().all()]
        team_ids = {link.team_id for link in link_records} | set(extra_team_ids)

        snapshot = MembershipSnapshot(
            project_members=tuple(ProjectMember.model_validate(row) for row in members.scalars().all()),
            team_members=tuple(await self._team_members(team_ids)),
            team_project_links=tuple(link_records),
            invitations=tuple(ProjectInvitation.model_validate(row) for row in invitations.scalars().all()),
            version=project.version,
            team_versions=await self._team_versions(team_ids),
        )
        logger.debug(
            f"Loaded snapshot for project {project_id} at version {project.version}: "
            f"{len(snapshot.project_members)} members, {len(link_records)} teams"
        )
        return snapshot

    async def load_team_snapshot(self, team_id: UUID) -> Optional[MembershipSnapshot]:
        """Snapshot of one team's membership, or None if the team does not exist."""
        team = await self.get_team(team_id)
        if team is None:
            return None

        links = await self.db.execute(
            select(models.TeamProject).where(models.TeamProject.team_id == team_id)
        )
        snapshot = MembershipSnapshot(
            team_members=tuple(await self._team_members([team_id])),
            team_project_links=tuple(TeamProjectLink.model_validate(row) for row in links.scalars().all()),
            version=team.version,
            team_versions=((team_id, team.version),),
        )
        logger.debug(f"Loaded snapshot for team {team_id} at version {team.version}")
        return snapshot

    async def load_user_snapshot(self, user_id: UUID) -> MembershipSnapshot:
        """
        Every record needed to resolve one user's access to all projects.

        The result is read-only: it spans several resources and carries no
        version, so plans cannot be built on it.
        """
        direct = await self.db.execute(
            select(models.ProjectMember).where(models.ProjectMember.user_id == user_id)
        )
        teams = await self.db.execute(
            select(models.TeamMember).where(models.TeamMember.user_id == user_id)
        )
        team_members = [TeamMember.model_validate(row) for row in teams.scalars().all()]

        link_records: List[TeamProjectLink] = []
        team_ids = [member.team_id for member in team_members]
        if team_ids:
            links = await self.db.execute(
                select(models.TeamProject).where(models.TeamProject.team_id.in_(team_ids))
            )
            link_records = [TeamProjectLink.model_validate(row) for row in links.scalars().all()]

        return MembershipSnapshot(
            project_members=tuple(ProjectMember.model_validate(row) for row in direct.scalars().all()),
            team_members=tuple(team_members),
            team_project_links=tuple(link_records),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _current_version(self, resource: ResourceRef) -> Optional[int]:
        table = models.Project if resource.scope == RoleScope.PROJECT else models.Team
        result = await self.db.execute(select(table.version).where(table.id == resource.id))
        return result.scalar_one_or_none()

    async def _bump_version(self, plan: MutationPlan) -> None:
        table = models.Project if plan.resource.scope == RoleScope.PROJECT else models.Team
        if plan.base_version is None:
            raise StaleSnapshotError(plan.resource, None, await self._current_version(plan.resource))

        result = await self.db.execute(
            update(table)
            .where(table.id == plan.resource.id, table.version == plan.base_version)
            .values(version=plan.base_version + 1)
        )
        if result.rowcount != 1:
            raise StaleSnapshotError(
                plan.resource,
                plan.base_version,
                await self._current_version(plan.resource),
            )

    async def _hold_guard(self, guard: VersionGuard) -> None:
        # Same-value compare-and-set; keeps the row locked until commit
        table = models.Project if guard.resource.scope == RoleScope.PROJECT else models.Team
        result = await self.db.execute(
            update(table)
            .where(table.id == guard.resource.id, table.version == guard.version)
            .values(version=guard.version)
        )
        if guard.version is None or result.rowcount != 1:
            raise StaleSnapshotError(
                guard.resource,
                guard.version,
                await self._current_version(guard.resource),
            )

    async def _owner_count(self, resource: ResourceRef) -> int:
        if resource.scope == RoleScope.PROJECT:
            query = select(func.count()).select_from(models.ProjectMember).where(
                models.ProjectMember.project_id == resource.id,
                models.ProjectMember.role == ProjectRole.OWNER.value,
            )
        else:
            query = select(func.count()).select_from(models.TeamMember).where(
                models.TeamMember.team_id == resource.id,
                models.TeamMember.role == TeamRole.TEAM_OWNER.value,
            )
        result = await self.db.execute(query)
        return result.scalar_one()

    async def _find_row(self, change: RecordChange):
        table, key_columns = _TABLES[change.record_type]
        conditions = [getattr(table, column) == value for column, value in zip(key_columns, change.key)]
        result = await self.db.execute(
            select(table).where(*conditions).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _apply_change(self, plan: MutationPlan, change: RecordChange) -> None:
        table, _ = _TABLES[change.record_type]
        row = await self._find_row(change)
        record = f"{change.record_type.value} {tuple(str(part) for part in change.key)}"

        if change.kind == ChangeKind.CREATE:
            if row is not None:
                raise StaleSnapshotError(plan.resource, plan.base_version, detail=f"{record} already exists")
            self.db.add(table(**_column_values(change.after)))
            return

        if row is None:
            raise StaleSnapshotError(plan.resource, plan.base_version, detail=f"{record} no longer exists")

        if change.kind == ChangeKind.DELETE:
            await self.db.delete(row)
            return

        before = _column_values(change.before)
        for column, value in _column_values(change.after).items():
            if before.get(column) == value:
                continue
            if getattr(row, column) != before.get(column):
                raise StaleSnapshotError(
                    plan.resource,
                    plan.base_version,
                    detail=f"{record} has a different {column}",
                )
            setattr(row, column, value)

    async def apply(self, plan: MutationPlan) -> None:
        """
        Commit a mutation plan atomically.

        Bumps the resource version (compare-and-set against the version the
        plan was computed from), holds the versions of any guarded
        resources, writes every change, re-checks that the resource still
        has an owner, then commits. Any failure rolls the whole plan back.

        Raises:
            StaleSnapshotError: If the resource or a guarded resource changed
                since the snapshot
            OwnerInvariantError: If the plan would leave the resource ownerless
        """
        if plan.is_empty:
            return

        try:
            owners_before = await self._owner_count(plan.resource)
            await self._bump_version(plan)
            for guard in plan.guards:
                await self._hold_guard(guard)
            for change in plan.changes:
                await self._apply_change(plan, change)
            await self.db.flush()

            if owners_before >= 1 and await self._owner_count(plan.resource) < 1:
                raise OwnerInvariantError(plan.resource)

            await self.db.commit()
        except StaleSnapshotError as e:
            await self.db.rollback()
            logger.warning(f"Rejected stale plan '{plan.description}': {e}")
            raise
        except Exception:
            await self.db.rollback()
            logger.error(f"Rolled back plan '{plan.description}'")
            raise

        logger.info(f"Committed plan: {plan.description} ({len(plan.changes)} changes)")


def get_membership_store(db: AsyncSession) -> MembershipStore:
    """Factory function to create a MembershipStore instance."""
    return MembershipStore(db)
