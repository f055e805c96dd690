"""Unit tests for the permission predicates.

Tests cover the grant rules of both hierarchies, owner protection, the
self-mutation rule and the per-member action summary used by clients.
"""

from uuid import uuid4

import pytest

from secrets_access.schemas.access import AccessSource, EffectiveAccess
from secrets_access.schemas.membership import ProjectMember, TeamMember
from secrets_access.schemas.mutation import AccessErrorKind
from secrets_access.schemas.role import ProjectRole, TeamRole
from secrets_access.services.permission_service import (
    can_edit_member_role,
    can_grant_role,
    can_leave_resource,
    can_manage_members,
    can_remove_member,
    can_transfer_ownership,
    check_leave,
    check_removal,
    check_role_change,
    check_transfer,
    count_owners,
    grantable_roles,
    member_actions,
)

PROJECT_ID = uuid4()


def _member(role: ProjectRole) -> ProjectMember:
    return ProjectMember(project_id=PROJECT_ID, user_id=uuid4(), role=role)


def _team_member(role: TeamRole) -> TeamMember:
    return TeamMember(team_id=uuid4(), user_id=uuid4(), role=role)


class TestCanManageMembers:
    """Tests for can_manage_members."""

    @pytest.mark.parametrize(
        "role,expected",
        [
            (ProjectRole.OWNER, True),
            (ProjectRole.ADMIN, True),
            (ProjectRole.MEMBER, False),
            (ProjectRole.VIEWER, False),
            (TeamRole.TEAM_OWNER, True),
            (TeamRole.TEAM_ADMIN, True),
            (TeamRole.TEAM_MEMBER, False),
            (None, False),
        ],
    )
    def test_manager_roles(self, role, expected):
        assert can_manage_members(role) is expected


class TestCanGrantRole:
    """Tests for can_grant_role."""

    def test_owner_grants_everything(self):
        for role in ProjectRole:
            assert can_grant_role(ProjectRole.OWNER, role)

    def test_admin_grants_up_to_own_role(self):
        """Admins may grant ADMIN, MEMBER and VIEWER but never OWNER."""
        assert can_grant_role(ProjectRole.ADMIN, ProjectRole.ADMIN)
        assert can_grant_role(ProjectRole.ADMIN, ProjectRole.MEMBER)
        assert can_grant_role(ProjectRole.ADMIN, ProjectRole.VIEWER)
        assert not can_grant_role(ProjectRole.ADMIN, ProjectRole.OWNER)

    def test_non_managers_grant_nothing(self):
        for actor in (ProjectRole.MEMBER, ProjectRole.VIEWER, None):
            for role in ProjectRole:
                assert not can_grant_role(actor, role)

    def test_team_admin_cannot_grant_team_owner(self):
        assert can_grant_role(TeamRole.TEAM_ADMIN, TeamRole.TEAM_MEMBER)
        assert not can_grant_role(TeamRole.TEAM_ADMIN, TeamRole.TEAM_OWNER)
        assert can_grant_role(TeamRole.TEAM_OWNER, TeamRole.TEAM_OWNER)

    def test_mixed_hierarchies_raise(self):
        with pytest.raises(TypeError):
            can_grant_role(TeamRole.TEAM_OWNER, ProjectRole.VIEWER)

    def test_grantable_roles(self):
        assert grantable_roles(ProjectRole.OWNER) == [
            ProjectRole.OWNER,
            ProjectRole.ADMIN,
            ProjectRole.MEMBER,
            ProjectRole.VIEWER,
        ]
        assert grantable_roles(ProjectRole.ADMIN) == [
            ProjectRole.ADMIN,
            ProjectRole.MEMBER,
            ProjectRole.VIEWER,
        ]
        assert grantable_roles(ProjectRole.VIEWER) == []
        assert grantable_roles(None) == []
        assert grantable_roles(TeamRole.TEAM_ADMIN) == [TeamRole.TEAM_ADMIN, TeamRole.TEAM_MEMBER]


class TestEditAndRemove:
    """Tests for can_edit_member_role and can_remove_member."""

    def test_cannot_edit_self(self):
        owner = _member(ProjectRole.OWNER)
        assert not can_edit_member_role(owner, owner, owner_count=2)

    def test_admin_cannot_touch_owner(self):
        admin, owner = _member(ProjectRole.ADMIN), _member(ProjectRole.OWNER)
        assert not can_edit_member_role(admin, owner, owner_count=1)
        assert not can_remove_member(admin, owner, owner_count=2)

    def test_admin_edits_member(self):
        admin, member = _member(ProjectRole.ADMIN), _member(ProjectRole.MEMBER)
        assert can_edit_member_role(admin, member, owner_count=1)
        assert can_remove_member(admin, member, owner_count=1)

    def test_member_edits_nobody(self):
        member, viewer = _member(ProjectRole.MEMBER), _member(ProjectRole.VIEWER)
        assert not can_edit_member_role(member, viewer, owner_count=1)
        assert not can_remove_member(member, viewer, owner_count=1)

    def test_sole_owner_cannot_be_removed(self):
        owner, other_owner = _member(ProjectRole.OWNER), _member(ProjectRole.OWNER)
        assert not can_remove_member(owner, other_owner, owner_count=1)
        assert can_remove_member(owner, other_owner, owner_count=2)

    def test_leave_and_transfer(self):
        owner, member = _member(ProjectRole.OWNER), _member(ProjectRole.MEMBER)
        assert not can_leave_resource(owner, owner_count=1)
        assert can_leave_resource(owner, owner_count=2)
        assert can_leave_resource(member, owner_count=1)
        assert can_transfer_ownership(owner)
        assert not can_transfer_ownership(member)

    def test_count_owners(self):
        members = [_member(ProjectRole.OWNER), _member(ProjectRole.ADMIN), _member(ProjectRole.OWNER)]
        assert count_owners(members) == 2
        assert count_owners([_team_member(TeamRole.TEAM_OWNER)]) == 1


class TestChecks:
    """Tests for the check_* functions returning one rejection kind."""

    def test_role_change_self(self):
        admin = _member(ProjectRole.ADMIN)
        rejection = check_role_change(admin, admin, ProjectRole.MEMBER, owner_count=1)
        assert rejection.kind == AccessErrorKind.SELF_MUTATION_FORBIDDEN

    def test_role_change_by_member(self):
        member, viewer = _member(ProjectRole.MEMBER), _member(ProjectRole.VIEWER)
        rejection = check_role_change(member, viewer, ProjectRole.MEMBER, owner_count=1)
        assert rejection.kind == AccessErrorKind.UNAUTHORIZED

    def test_role_change_admin_promotes_to_owner(self):
        admin, member = _member(ProjectRole.ADMIN), _member(ProjectRole.MEMBER)
        rejection = check_role_change(admin, member, ProjectRole.OWNER, owner_count=1)
        assert rejection.kind == AccessErrorKind.UNAUTHORIZED

    def test_role_change_demote_sole_owner(self):
        """Demoting an owner while only one owner is counted is refused."""
        owner, target = _member(ProjectRole.OWNER), _member(ProjectRole.OWNER)
        rejection = check_role_change(owner, target, ProjectRole.ADMIN, owner_count=1)
        assert rejection.kind == AccessErrorKind.SOLE_OWNER_VIOLATION

    def test_role_change_allowed(self):
        owner, admin = _member(ProjectRole.OWNER), _member(ProjectRole.ADMIN)
        assert check_role_change(owner, admin, ProjectRole.MEMBER, owner_count=1) is None

    def test_removal_self(self):
        owner = _member(ProjectRole.OWNER)
        assert check_removal(owner, owner, owner_count=2).kind == AccessErrorKind.SELF_MUTATION_FORBIDDEN

    def test_removal_sole_owner(self):
        owner, target = _member(ProjectRole.OWNER), _member(ProjectRole.OWNER)
        assert check_removal(owner, target, owner_count=1).kind == AccessErrorKind.SOLE_OWNER_VIOLATION

    def test_removal_admin_on_owner(self):
        admin, owner = _member(ProjectRole.ADMIN), _member(ProjectRole.OWNER)
        assert check_removal(admin, owner, owner_count=2).kind == AccessErrorKind.UNAUTHORIZED

    @pytest.mark.parametrize(
        "owner_count,expected",
        [
            (1, AccessErrorKind.SOLE_OWNER_VIOLATION),
            (2, AccessErrorKind.UNAUTHORIZED),
        ],
    )
    def test_role_change_and_removal_agree_on_owner_target(self, owner_count, expected):
        """An admin acting on an owner gets the same refusal from both checks."""
        admin, owner = _member(ProjectRole.ADMIN), _member(ProjectRole.OWNER)

        assert check_role_change(admin, owner, ProjectRole.ADMIN, owner_count).kind == expected
        assert check_removal(admin, owner, owner_count).kind == expected

    def test_leave_sole_owner(self):
        owner = _member(ProjectRole.OWNER)
        assert check_leave(owner, owner_count=1).kind == AccessErrorKind.SOLE_OWNER_VIOLATION
        assert check_leave(owner, owner_count=2) is None

    def test_transfer(self):
        owner, admin = _member(ProjectRole.OWNER), _member(ProjectRole.ADMIN)
        assert check_transfer(admin, owner).kind == AccessErrorKind.UNAUTHORIZED
        assert check_transfer(owner, owner).kind == AccessErrorKind.SELF_MUTATION_FORBIDDEN
        assert check_transfer(owner, admin) is None


class TestMemberActions:
    """Tests for member_actions."""

    def test_owner_on_admin(self):
        owner, admin = _member(ProjectRole.OWNER), _member(ProjectRole.ADMIN)

        actions = member_actions(owner, admin, owner_count=1)

        assert actions.can_view
        assert actions.can_edit_role
        assert actions.can_remove
        assert actions.can_transfer_ownership_to
        assert actions.grantable_roles == ["OWNER", "MEMBER", "VIEWER"]

    def test_admin_on_owner(self):
        admin, owner = _member(ProjectRole.ADMIN), _member(ProjectRole.OWNER)

        actions = member_actions(admin, owner, owner_count=1)

        assert actions.can_view
        assert not actions.can_edit_role
        assert not actions.can_remove
        assert not actions.can_transfer_ownership_to
        assert actions.grantable_roles == []

    def test_team_inherited_target_is_read_only(self):
        owner = _member(ProjectRole.OWNER)
        team_viewer = EffectiveAccess(
            project_id=PROJECT_ID,
            user_id=uuid4(),
            role=ProjectRole.VIEWER,
            source=AccessSource.TEAM,
        )

        actions = member_actions(owner, team_viewer, owner_count=1)

        assert actions.can_view
        assert not actions.can_edit_role
        assert not actions.can_remove
        assert not actions.can_transfer_ownership_to

    def test_direct_and_team_target_is_mutable(self):
        owner = _member(ProjectRole.OWNER)
        both = EffectiveAccess(
            project_id=PROJECT_ID,
            user_id=uuid4(),
            role=ProjectRole.MEMBER,
            source=AccessSource.BOTH,
        )

        actions = member_actions(owner, both, owner_count=1)

        assert both.is_direct
        assert actions.can_edit_role
        assert actions.can_remove

    def test_no_actor(self):
        actions = member_actions(None, _member(ProjectRole.VIEWER), owner_count=1)
        assert not actions.can_view
