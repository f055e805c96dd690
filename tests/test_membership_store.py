"""Integration tests for MembershipStore against SQLite."""

from datetime import datetime

import pytest
from sqlalchemy import update

from secrets_access import models
from secrets_access.schemas.access import AccessSource
from secrets_access.schemas.invitation import InvitationStatus
from secrets_access.schemas.membership import RecordType, ResourceRef
from secrets_access.schemas.mutation import MutationPlan
from secrets_access.schemas.role import ProjectRole, TeamRole
from secrets_access.services.access_resolver import resolve_access, resolve_access_for_all_projects
from secrets_access.services.exceptions import OwnerInvariantError, StaleSnapshotError
from secrets_access.services.invitation_service import plan_accept_invitation, plan_invitation
from secrets_access.services.membership_service import (
    delete_change,
    plan_add_member,
    plan_link_team,
    plan_ownership_transfer,
    plan_removal,
    plan_role_change,
)

NOW = datetime(2026, 5, 4, 10, 30)


@pytest.fixture
async def project_id(store, alice, bob, carol):
    """ID of a project owned by alice with bob as ADMIN and carol as MEMBER.

    Tests take the plain ID so nothing touches an ORM instance that a
    rolled back apply has expired.
    """
    project = await store.create_project("Payments", alice.id, NOW)
    project_id = project.id
    resource = ResourceRef.project(project_id)
    for user, role in ((bob, ProjectRole.ADMIN), (carol, ProjectRole.MEMBER)):
        snapshot = await store.load_project_snapshot(project_id)
        await store.apply(plan_add_member(alice.id, user.id, role, resource, snapshot, NOW))
    return project_id


class TestCreateAndLoad:
    """Tests for resource creation and snapshot loading."""

    async def test_create_project_makes_sole_owner(self, store, alice):
        project = await store.create_project("Billing", alice.id, NOW)

        snapshot = await store.load_project_snapshot(project.id)

        assert snapshot.version == 0
        assert [(m.user_id, m.role) for m in snapshot.project_members] == [(alice.id, ProjectRole.OWNER)]

    async def test_create_team(self, store, dave):
        team = await store.create_team("Platform", dave.id, NOW)

        snapshot = await store.load_team_snapshot(team.id)

        assert snapshot.team_member(team.id, dave.id).role == TeamRole.TEAM_OWNER

    async def test_missing_resources(self, store, user_id):
        assert await store.load_project_snapshot(user_id) is None
        assert await store.load_team_snapshot(user_id) is None

    async def test_version_increments_per_plan(self, store, project_id):
        snapshot = await store.load_project_snapshot(project_id)
        assert snapshot.version == 2
        assert len(snapshot.project_members) == 3


class TestApply:
    """Tests for committing plans."""

    async def test_role_change_persists(self, store, project_id, alice, carol):
        snapshot = await store.load_project_snapshot(project_id)
        plan = plan_role_change(alice.id, carol.id, ProjectRole.ADMIN, ResourceRef.project(project_id), snapshot)

        await store.apply(plan)

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, carol.id).role == ProjectRole.ADMIN
        assert after.version == snapshot.version + 1

    async def test_removal_persists(self, store, project_id, bob, carol):
        snapshot = await store.load_project_snapshot(project_id)

        await store.apply(plan_removal(bob.id, carol.id, ResourceRef.project(project_id), snapshot))

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, carol.id) is None

    async def test_empty_plan_is_noop(self, store, project_id, alice, carol):
        snapshot = await store.load_project_snapshot(project_id)
        plan = plan_role_change(alice.id, carol.id, ProjectRole.MEMBER, ResourceRef.project(project_id), snapshot)

        await store.apply(plan)

        after = await store.load_project_snapshot(project_id)
        assert after.version == snapshot.version

    async def test_lost_update_is_rejected(self, store, project_id, alice, bob, carol):
        """Two plans computed from the same snapshot: the second one is stale."""
        resource = ResourceRef.project(project_id)
        snapshot = await store.load_project_snapshot(project_id)
        first = plan_role_change(alice.id, carol.id, ProjectRole.VIEWER, resource, snapshot)
        second = plan_removal(bob.id, carol.id, resource, snapshot)

        await store.apply(first)
        with pytest.raises(StaleSnapshotError):
            await store.apply(second)

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, carol.id).role == ProjectRole.VIEWER
        assert after.version == snapshot.version + 1

    async def test_store_usable_after_rejected_plan(self, store, project_id, alice, bob, carol):
        resource = ResourceRef.project(project_id)
        snapshot = await store.load_project_snapshot(project_id)
        await store.apply(plan_role_change(alice.id, carol.id, ProjectRole.VIEWER, resource, snapshot))

        with pytest.raises(StaleSnapshotError) as exc_info:
            await store.apply(plan_removal(bob.id, carol.id, resource, snapshot))
        assert exc_info.value.expected == snapshot.version
        assert exc_info.value.actual == snapshot.version + 1

        fresh = await store.load_project_snapshot(project_id)
        await store.apply(plan_removal(bob.id, carol.id, resource, fresh))

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, carol.id) is None
        assert after.version == fresh.version + 1

    async def test_owner_invariant_rolls_back(self, store, project_id, alice):
        resource = ResourceRef.project(project_id)
        snapshot = await store.load_project_snapshot(project_id)
        owner = snapshot.project_member(project_id, alice.id)
        plan = MutationPlan(
            resource=resource,
            base_version=snapshot.version,
            changes=[delete_change(RecordType.PROJECT_MEMBER, owner)],
        )

        with pytest.raises(OwnerInvariantError):
            await store.apply(plan)

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, alice.id).role == ProjectRole.OWNER
        assert after.version == snapshot.version


class TestOwnershipTransfer:
    """Ownership transfer is committed as one unit."""

    async def test_transfer_commits_both_records(self, store, project_id, alice, bob, carol):
        snapshot = await store.load_project_snapshot(project_id)

        await store.apply(plan_ownership_transfer(alice.id, bob.id, ResourceRef.project(project_id), snapshot))

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, alice.id).role == ProjectRole.ADMIN
        assert after.project_member(project_id, bob.id).role == ProjectRole.OWNER
        assert after.project_member(project_id, carol.id).role == ProjectRole.MEMBER

    async def test_failed_transfer_changes_nothing(self, store, db_session, project_id, alice, carol):
        """If the target record drifted, the actor's demotion is rolled back too."""
        snapshot = await store.load_project_snapshot(project_id)
        plan = plan_ownership_transfer(alice.id, carol.id, ResourceRef.project(project_id), snapshot)

        # Change carol's row without bumping the project version
        await db_session.execute(
            update(models.ProjectMember)
            .where(
                models.ProjectMember.project_id == project_id,
                models.ProjectMember.user_id == carol.id,
            )
            .values(role=ProjectRole.VIEWER.value)
        )
        await db_session.commit()

        with pytest.raises(StaleSnapshotError) as exc_info:
            await store.apply(plan)
        assert exc_info.value.detail.startswith("project_member")
        assert "has a different role" in str(exc_info.value)
        assert "found None" not in str(exc_info.value)

        after = await store.load_project_snapshot(project_id)
        assert after.project_member(project_id, alice.id).role == ProjectRole.OWNER
        assert after.project_member(project_id, carol.id).role == ProjectRole.VIEWER
        assert after.version == snapshot.version


class TestTeamsAndInvitations:
    """Team links and invitations through the store."""

    async def test_linked_team_gives_viewer(self, store, project_id, alice, dave):
        team = await store.create_team("Platform", alice.id, NOW)
        snapshot = await store.load_team_snapshot(team.id)
        await store.apply(
            plan_add_member(alice.id, dave.id, TeamRole.TEAM_ADMIN, ResourceRef.team(team.id), snapshot, NOW)
        )

        snapshot = await store.load_project_snapshot(project_id, extra_team_ids=[team.id])
        await store.apply(plan_link_team(alice.id, team.id, project_id, snapshot))

        access = resolve_access(dave.id, project_id, await store.load_project_snapshot(project_id))
        assert access.role == ProjectRole.VIEWER
        assert access.source == AccessSource.TEAM

        user_view = resolve_access_for_all_projects(dave.id, await store.load_user_snapshot(dave.id))
        assert [(a.project_id, a.role) for a in user_view] == [(project_id, ProjectRole.VIEWER)]

    async def test_link_fails_after_concurrent_team_demotion(self, store, project_id, alice, dave):
        team = await store.create_team("Platform", alice.id, NOW)
        team_id = team.id
        team_ref = ResourceRef.team(team_id)
        snapshot = await store.load_team_snapshot(team_id)
        await store.apply(plan_add_member(alice.id, dave.id, TeamRole.TEAM_OWNER, team_ref, snapshot, NOW))

        project_snapshot = await store.load_project_snapshot(project_id, extra_team_ids=[team_id])
        link_plan = plan_link_team(alice.id, team_id, project_id, project_snapshot)
        assert link_plan.ok

        # dave demotes alice in the team before the link is committed
        team_snapshot = await store.load_team_snapshot(team_id)
        await store.apply(plan_role_change(dave.id, alice.id, TeamRole.TEAM_MEMBER, team_ref, team_snapshot))

        with pytest.raises(StaleSnapshotError) as exc_info:
            await store.apply(link_plan)
        assert exc_info.value.resource == team_ref

        after = await store.load_project_snapshot(project_id)
        assert after.link(team_id, project_id) is None
        assert after.version == project_snapshot.version

    async def test_invitation_accept_persists(self, store, project_id, alice, dave):
        snapshot = await store.load_project_snapshot(project_id)
        plan = plan_invitation(alice.id, project_id, dave.email, ProjectRole.MEMBER, snapshot, NOW)
        await store.apply(plan)
        invitation_id = plan.changes[-1].after["id"]

        assert await store.find_invitation_project(invitation_id) == project_id

        snapshot = await store.load_project_snapshot(project_id)
        await store.apply(plan_accept_invitation(invitation_id, dave, snapshot, NOW))

        after = await store.load_project_snapshot(project_id)
        assert after.invitation(invitation_id).status == InvitationStatus.ACCEPTED
        assert after.project_member(project_id, dave.id).role == ProjectRole.MEMBER
