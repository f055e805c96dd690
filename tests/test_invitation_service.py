"""Unit tests for the invitation lifecycle."""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from secrets_access.schemas.invitation import InvitationStatus, ProjectInvitation
from secrets_access.schemas.membership import (
    MembershipSnapshot,
    ProjectMember,
    TeamMember,
    TeamProjectLink,
    UserSummary,
)
from secrets_access.schemas.mutation import AccessErrorKind, ChangeKind
from secrets_access.schemas.role import ProjectRole, TeamRole
from secrets_access.services.access_resolver import resolve_access
from secrets_access.services.invitation_service import (
    list_pending_invitations,
    plan_accept_invitation,
    plan_decline_invitation,
    plan_expire_invitation,
    plan_expire_stale_invitations,
    plan_invitation,
    plan_revoke_invitation,
    transition_invitation,
)
from secrets_access.services.membership_service import apply_plan

NOW = datetime(2026, 3, 1, 9, 0)


@pytest.fixture
def setup():
    project_id = uuid4()
    owner, admin, member, team_viewer = uuid4(), uuid4(), uuid4(), uuid4()
    team_id = uuid4()
    snapshot = MembershipSnapshot(
        project_members=(
            ProjectMember(project_id=project_id, user_id=owner, role=ProjectRole.OWNER),
            ProjectMember(project_id=project_id, user_id=admin, role=ProjectRole.ADMIN),
            ProjectMember(project_id=project_id, user_id=member, role=ProjectRole.MEMBER),
        ),
        team_members=(TeamMember(team_id=team_id, user_id=team_viewer, role=TeamRole.TEAM_OWNER),),
        team_project_links=(TeamProjectLink(team_id=team_id, project_id=project_id),),
        version=3,
    )
    return {
        "project_id": project_id,
        "owner": owner,
        "admin": admin,
        "member": member,
        "team_viewer": team_viewer,
        "snapshot": snapshot,
    }


def _invite(setup, email="invitee@example.com", role=ProjectRole.MEMBER, now=NOW, snapshot=None):
    if snapshot is None:
        snapshot = setup["snapshot"]
    plan = plan_invitation(setup["owner"], setup["project_id"], email, role, snapshot, now)
    after = apply_plan(snapshot, plan)
    return after, ProjectInvitation(**plan.changes[-1].after)


class TestTransition:
    """Tests for transition_invitation."""

    def _pending(self, status=InvitationStatus.PENDING):
        return ProjectInvitation(
            id=uuid4(),
            project_id=uuid4(),
            email="a@example.com",
            role=ProjectRole.VIEWER,
            status=status,
            created_at=NOW,
            expires_at=NOW + timedelta(days=7),
        )

    def test_accept_sets_accepted_at(self):
        updated = transition_invitation(self._pending(), InvitationStatus.ACCEPTED, NOW)
        assert updated.status == InvitationStatus.ACCEPTED
        assert updated.accepted_at == NOW

    @pytest.mark.parametrize(
        "terminal",
        [InvitationStatus.ACCEPTED, InvitationStatus.REVOKED, InvitationStatus.EXPIRED],
    )
    def test_terminal_states_are_final(self, terminal):
        invitation = self._pending(terminal)
        for target in InvitationStatus:
            result = transition_invitation(invitation, target, NOW)
            assert result.kind == AccessErrorKind.INVITATION_ALREADY_RESOLVED

    def test_pending_to_pending_refused(self):
        result = transition_invitation(self._pending(), InvitationStatus.PENDING, NOW)
        assert result.kind == AccessErrorKind.INVITATION_ALREADY_RESOLVED


class TestCreateInvitation:
    """Tests for plan_invitation."""

    def test_owner_invites(self, setup):
        after, invitation = _invite(setup)

        assert invitation.status == InvitationStatus.PENDING
        assert invitation.invited_by == setup["owner"]
        assert invitation.expires_at == NOW + timedelta(days=7)
        assert after.invitation(invitation.id) == invitation

    def test_custom_expiry(self, setup):
        plan = plan_invitation(
            setup["owner"],
            setup["project_id"],
            "x@example.com",
            ProjectRole.VIEWER,
            setup["snapshot"],
            NOW,
            expires_in=timedelta(hours=1),
        )
        assert plan.changes[-1].after["expires_at"] == NOW + timedelta(hours=1)

    def test_admin_cannot_invite_owner(self, setup):
        result = plan_invitation(
            setup["admin"], setup["project_id"], "x@example.com", ProjectRole.OWNER, setup["snapshot"], NOW
        )
        assert result.kind == AccessErrorKind.UNAUTHORIZED

    def test_member_cannot_invite(self, setup):
        result = plan_invitation(
            setup["member"], setup["project_id"], "x@example.com", ProjectRole.VIEWER, setup["snapshot"], NOW
        )
        assert result.kind == AccessErrorKind.UNAUTHORIZED

    def test_team_viewer_cannot_invite(self, setup):
        result = plan_invitation(
            setup["team_viewer"], setup["project_id"], "x@example.com", ProjectRole.VIEWER, setup["snapshot"], NOW
        )
        assert result.kind == AccessErrorKind.UNAUTHORIZED

    def test_outsider_not_found(self, setup):
        result = plan_invitation(
            uuid4(), setup["project_id"], "x@example.com", ProjectRole.VIEWER, setup["snapshot"], NOW
        )
        assert result.kind == AccessErrorKind.NOT_FOUND

    def test_duplicate_pending_invitation(self, setup):
        after, _ = _invite(setup)

        result = plan_invitation(
            setup["admin"], setup["project_id"], "INVITEE@example.com ", ProjectRole.VIEWER, after, NOW
        )

        assert result.kind == AccessErrorKind.DUPLICATE_INVITATION

    def test_overdue_pending_is_replaced(self, setup):
        """An overdue pending invitation is expired by the plan that replaces it."""
        after, old = _invite(setup)
        later = NOW + timedelta(days=8)

        plan = plan_invitation(setup["owner"], setup["project_id"], old.email, ProjectRole.VIEWER, after, later)

        assert [c.kind for c in plan.changes] == [ChangeKind.UPDATE, ChangeKind.CREATE]
        result = apply_plan(after, plan)
        assert result.invitation(old.id).status == InvitationStatus.EXPIRED
        assert len(list_pending_invitations(setup["project_id"], result, later)) == 1

    def test_reinvite_after_revoke(self, setup):
        after, invitation = _invite(setup)
        after = apply_plan(
            after, plan_revoke_invitation(setup["owner"], setup["project_id"], invitation.id, after, NOW)
        )

        plan = plan_invitation(setup["owner"], setup["project_id"], invitation.email, ProjectRole.VIEWER, after, NOW)

        assert plan.ok
        assert len(plan.changes) == 1


class TestAcceptAndDecline:
    """Tests for plan_accept_invitation and plan_decline_invitation."""

    def test_accept_creates_membership(self, setup):
        after, invitation = _invite(setup, role=ProjectRole.ADMIN)
        invitee = UserSummary(id=uuid4(), email="Invitee@Example.com")

        result = apply_plan(after, plan_accept_invitation(invitation.id, invitee, after, NOW))

        accepted = result.invitation(invitation.id)
        assert accepted.status == InvitationStatus.ACCEPTED
        assert accepted.accepted_at == NOW
        assert resolve_access(invitee.id, setup["project_id"], result).role == ProjectRole.ADMIN

    def test_accept_twice(self, setup):
        after, invitation = _invite(setup)
        invitee = UserSummary(id=uuid4(), email=invitation.email)
        after = apply_plan(after, plan_accept_invitation(invitation.id, invitee, after, NOW))

        result = plan_accept_invitation(invitation.id, invitee, after, NOW)

        assert result.kind == AccessErrorKind.INVITATION_ALREADY_RESOLVED

    def test_accept_wrong_email(self, setup):
        after, invitation = _invite(setup)
        stranger = UserSummary(id=uuid4(), email="stranger@example.com")

        result = plan_accept_invitation(invitation.id, stranger, after, NOW)

        assert result.kind == AccessErrorKind.UNAUTHORIZED

    def test_accept_overdue(self, setup):
        after, invitation = _invite(setup)
        invitee = UserSummary(id=uuid4(), email=invitation.email)

        result = plan_accept_invitation(invitation.id, invitee, after, NOW + timedelta(days=7))

        assert result.kind == AccessErrorKind.INVITATION_ALREADY_RESOLVED

    def test_accept_as_existing_member_keeps_role(self, setup):
        member_email = "member@example.com"
        after, invitation = _invite(setup, email=member_email, role=ProjectRole.ADMIN)
        member = UserSummary(id=setup["member"], email=member_email)

        plan = plan_accept_invitation(invitation.id, member, after, NOW)

        assert len(plan.changes) == 1
        result = apply_plan(after, plan)
        assert result.project_member(setup["project_id"], setup["member"]).role == ProjectRole.MEMBER

    def test_unknown_invitation(self, setup):
        user = UserSummary(id=uuid4(), email="x@example.com")
        result = plan_accept_invitation(uuid4(), user, setup["snapshot"], NOW)
        assert result.kind == AccessErrorKind.NOT_FOUND

    def test_decline_revokes(self, setup):
        after, invitation = _invite(setup)
        invitee = UserSummary(id=uuid4(), email=invitation.email)

        result = apply_plan(after, plan_decline_invitation(invitation.id, invitee, after, NOW))

        assert result.invitation(invitation.id).status == InvitationStatus.REVOKED
        assert result.project_member(setup["project_id"], invitee.id) is None


class TestRevokeAndExpire:
    """Tests for revoking and expiring invitations."""

    def test_member_cannot_revoke(self, setup):
        after, invitation = _invite(setup)
        result = plan_revoke_invitation(setup["member"], setup["project_id"], invitation.id, after, NOW)
        assert result.kind == AccessErrorKind.UNAUTHORIZED

    def test_revoke_wrong_project(self, setup):
        after, invitation = _invite(setup)
        result = plan_revoke_invitation(setup["owner"], uuid4(), invitation.id, after, NOW)
        assert result.kind == AccessErrorKind.NOT_FOUND

    def test_revoke_resolved_invitation(self, setup):
        after, invitation = _invite(setup)
        after = apply_plan(
            after, plan_revoke_invitation(setup["admin"], setup["project_id"], invitation.id, after, NOW)
        )

        result = plan_revoke_invitation(setup["admin"], setup["project_id"], invitation.id, after, NOW)

        assert result.kind == AccessErrorKind.INVITATION_ALREADY_RESOLVED

    def test_expire_before_due_is_empty(self, setup):
        after, invitation = _invite(setup)
        plan = plan_expire_invitation(invitation.id, after, NOW + timedelta(days=1))
        assert plan.is_empty

    def test_expire_when_due(self, setup):
        after, invitation = _invite(setup)

        result = apply_plan(after, plan_expire_invitation(invitation.id, after, NOW + timedelta(days=7)))

        assert result.invitation(invitation.id).status == InvitationStatus.EXPIRED

    def test_expire_stale_invitations(self, setup):
        after, first = _invite(setup, email="first@example.com")
        after, second = _invite(setup, email="second@example.com", now=NOW + timedelta(days=3), snapshot=after)
        check_time = NOW + timedelta(days=8)

        plan = plan_expire_stale_invitations(setup["project_id"], after, check_time)

        assert [tuple(c.key) for c in plan.changes] == [(first.id,)]
        result = apply_plan(after, plan)
        assert result.invitation(first.id).status == InvitationStatus.EXPIRED
        assert result.invitation(second.id).status == InvitationStatus.PENDING
        assert list_pending_invitations(setup["project_id"], result, check_time) == [second]

    def test_list_pending_newest_first(self, setup):
        after, first = _invite(setup, email="first@example.com")
        after, second = _invite(setup, email="second@example.com", now=NOW + timedelta(hours=1), snapshot=after)

        pending = list_pending_invitations(setup["project_id"], after, NOW + timedelta(hours=2))

        assert [inv.id for inv in pending] == [second.id, first.id]
