"""Tests for the team invitation lifecycle."""
import logging
from datetime import timedelta

import pytest
from sqlalchemy import update

from teamhub import invitations, store
from teamhub.exceptions import (
    Conflict,
    Forbidden,
    InvitationExpired,
    NotFound,
    PersistenceError,
    ValidationError,
)
from teamhub.models import (
    ActivityLog,
    ActivityType,
    InvitationStatus,
    Notification,
    NotificationType,
    TeamInvitation,
    TeamMembership,
    TeamRole,
    db,
    utcnow,
)


@pytest.fixture()
def setup(factory):
    """Owner alice with a team, registered invitees bob and carol."""
    alice = factory.user("alice", full_name="Alice Owner")
    bob = factory.user("bob", full_name="Bob Builder")
    carol = factory.user("carol")
    team = factory.team(alice)
    return {
        "alice": alice,
        "bob": bob,
        "carol": carol,
        "team": team,
        "owner": factory.principal(alice),
        "bob_p": factory.principal(bob),
        "carol_p": factory.principal(carol),
    }


def _memberships(team_id, user_id):
    return TeamMembership.query.filter_by(team_id=team_id, user_id=user_id).count()


class TestCreateInvitation:
    """Invitation creation and its validation order."""

    def test_owner_invites_registered_user(self, setup):
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com", role="admin"
        )
        assert invitation.id is not None
        assert invitation.status == InvitationStatus.PENDING
        assert invitation.role == TeamRole.ADMIN
        assert invitation.email == "bob@example.com"
        assert len(invitation.token) == 64
        assert invitation.expires_at - invitation.created_at == timedelta(days=7)

    def test_email_is_lower_cased(self, setup):
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "  Bob@Example.COM "
        )
        assert invitation.email == "bob@example.com"
        assert invitation.role == TeamRole.MEMBER

    def test_invitee_is_notified_and_activity_logged(self, setup):
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )
        notification = Notification.query.filter_by(user_id=setup["bob"].id).one()
        assert notification.notification_type == NotificationType.TEAM_INVITATION
        assert notification.actor_id == setup["alice"].id
        assert notification.team_id == setup["team"].id
        assert notification.data["invitation_id"] == invitation.id

        entry = ActivityLog.query.filter_by(
            activity_type=ActivityType.INVITATION_SENT
        ).one()
        assert entry.user_id == setup["alice"].id
        assert entry.context["email"] == "bob@example.com"

    def test_admin_can_invite(self, setup, factory):
        factory.member(setup["team"], setup["carol"], role=TeamRole.ADMIN)
        invitation = invitations.create_invitation(
            setup["team"].id, setup["carol_p"], "bob@example.com"
        )
        assert invitation.invited_by_id == setup["carol"].id

    def test_plain_member_cannot_invite(self, setup, factory):
        factory.member(setup["team"], setup["carol"])
        with pytest.raises(Forbidden):
            invitations.create_invitation(
                setup["team"].id, setup["carol_p"], "bob@example.com"
            )

    def test_missing_team_wins_over_bad_input(self, setup):
        with pytest.raises(NotFound):
            invitations.create_invitation(9999, setup["owner"], "not an email")

    def test_permission_checked_before_input(self, setup):
        with pytest.raises(Forbidden):
            invitations.create_invitation(
                setup["team"].id, setup["carol_p"], "not an email", role="owner"
            )

    @pytest.mark.parametrize("email", ["", "   ", None, "not-an-email", "a@"])
    def test_invalid_email(self, setup, email):
        with pytest.raises(ValidationError):
            invitations.create_invitation(setup["team"].id, setup["owner"], email)

    @pytest.mark.parametrize("role", ["owner", "superuser", ""])
    def test_invalid_role(self, setup, role):
        with pytest.raises(ValidationError):
            invitations.create_invitation(
                setup["team"].id, setup["owner"], "bob@example.com", role=role
            )

    def test_unregistered_email_is_rejected(self, setup):
        with pytest.raises(ValidationError):
            invitations.create_invitation(
                setup["team"].id, setup["owner"], "nobody@example.com"
            )
        assert TeamInvitation.query.count() == 0

    def test_duplicate_pending_invitation(self, setup):
        invitations.create_invitation(setup["team"].id, setup["owner"], "bob@example.com")
        with pytest.raises(Conflict):
            invitations.create_invitation(
                setup["team"].id, setup["owner"], "BOB@example.com"
            )
        assert TeamInvitation.query.count() == 1

    def test_expired_invitation_does_not_block_a_new_one(self, setup):
        past = utcnow() - timedelta(days=30)
        invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com", now=past
        )
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )
        assert invitation.status == InvitationStatus.PENDING
        assert TeamInvitation.query.count() == 2

    def test_existing_member_cannot_be_invited(self, setup, factory):
        factory.member(setup["team"], setup["bob"])
        with pytest.raises(Conflict):
            invitations.create_invitation(
                setup["team"].id, setup["owner"], "bob@example.com"
            )

    def test_owner_cannot_be_invited(self, setup):
        with pytest.raises(Conflict):
            invitations.create_invitation(
                setup["team"].id, setup["owner"], "alice@example.com"
            )

    def test_expiry_days_from_config(self, setup, app):
        app.config["INVITATION_EXPIRY_DAYS"] = 2
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )
        assert invitation.expires_at - invitation.created_at == timedelta(days=2)

    def test_email_failure_does_not_fail_creation(self, setup, monkeypatch, caplog):
        def broken_mailer(**kwargs):
            raise OSError("smtp down")

        monkeypatch.setattr(invitations, "send_team_invitation_email", broken_mailer)
        with caplog.at_level(logging.WARNING):
            invitation = invitations.create_invitation(
                setup["team"].id, setup["owner"], "bob@example.com"
            )
        assert invitation.status == InvitationStatus.PENDING
        assert "Error in invitation email" in caplog.text


class TestResolveInvitation:
    """Accepting and rejecting invitations."""

    @pytest.fixture()
    def invitation(self, setup):
        return invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com", role="admin"
        )

    def test_accept_creates_membership(self, setup, invitation):
        result = invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")
        assert result.status == InvitationStatus.ACCEPTED
        assert result.responded_at is not None

        membership = store.find_membership(setup["team"].id, setup["bob"].id)
        assert membership is not None
        assert membership.role == TeamRole.ADMIN

    def test_accept_notifies_inviter_and_logs_join(self, setup, invitation):
        invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")

        notification = Notification.query.filter_by(
            user_id=setup["alice"].id,
            notification_type=NotificationType.TEAM_MEMBER_JOINED,
        ).one()
        assert notification.actor_id == setup["bob"].id

        entry = ActivityLog.query.filter_by(
            activity_type=ActivityType.MEMBER_JOINED
        ).one()
        assert entry.user_id == setup["bob"].id
        assert entry.context == {"role": "admin", "invitation_id": invitation.id}

    def test_reject_records_status_without_membership(self, setup, invitation):
        result = invitations.resolve_invitation(invitation.id, setup["bob_p"], "reject")
        assert result.status == InvitationStatus.REJECTED
        assert _memberships(setup["team"].id, setup["bob"].id) == 0

        assert (
            Notification.query.filter_by(
                user_id=setup["alice"].id,
                notification_type=NotificationType.TEAM_INVITATION_REJECTED,
            ).count()
            == 1
        )
        assert (
            ActivityLog.query.filter_by(
                activity_type=ActivityType.INVITATION_REJECTED
            ).count()
            == 1
        )

    def test_action_is_case_insensitive(self, setup, invitation):
        result = invitations.resolve_invitation(invitation.id, setup["bob_p"], " ACCEPT ")
        assert result.status == InvitationStatus.ACCEPTED

    @pytest.mark.parametrize("action", ["maybe", "", None, 1])
    def test_unknown_action(self, setup, invitation, action):
        with pytest.raises(ValidationError):
            invitations.resolve_invitation(invitation.id, setup["bob_p"], action)

    def test_missing_invitation(self, setup):
        with pytest.raises(NotFound):
            invitations.resolve_invitation(4242, setup["bob_p"], "accept")

    def test_other_user_cannot_resolve(self, setup, invitation):
        with pytest.raises(Forbidden):
            invitations.resolve_invitation(invitation.id, setup["carol_p"], "accept")
        with pytest.raises(Forbidden):
            invitations.resolve_invitation(invitation.id, setup["owner"], "reject")
        assert store.find_invitation(invitation.id).status == InvitationStatus.PENDING

    def test_second_accept_conflicts(self, setup, invitation):
        invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")
        with pytest.raises(Conflict):
            invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")
        assert _memberships(setup["team"].id, setup["bob"].id) == 1

    def test_reject_after_accept_conflicts(self, setup, invitation):
        invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")
        with pytest.raises(Conflict):
            invitations.resolve_invitation(invitation.id, setup["bob_p"], "reject")
        assert store.find_invitation(invitation.id).status == InvitationStatus.ACCEPTED

    def test_accept_after_reject_conflicts(self, setup, invitation):
        invitations.resolve_invitation(invitation.id, setup["bob_p"], "reject")
        with pytest.raises(Conflict):
            invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")
        assert _memberships(setup["team"].id, setup["bob"].id) == 0

    def test_accept_when_already_member_keeps_single_membership(
        self, setup, invitation, factory
    ):
        factory.member(setup["team"], setup["bob"])
        result = invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")

        assert result.status == InvitationStatus.ACCEPTED
        assert _memberships(setup["team"].id, setup["bob"].id) == 1
        # Existing membership keeps its role
        assert (
            store.find_membership(setup["team"].id, setup["bob"].id).role
            == TeamRole.MEMBER
        )
        assert (
            ActivityLog.query.filter_by(activity_type=ActivityType.MEMBER_JOINED).count()
            == 0
        )

    def test_resolve_by_token(self, setup, invitation):
        result = invitations.resolve_invitation_by_token(
            invitation.token, setup["bob_p"], "accept"
        )
        assert result.id == invitation.id
        assert result.status == InvitationStatus.ACCEPTED

    @pytest.mark.parametrize("token", ["", None, "deadbeef"])
    def test_unknown_token(self, setup, invitation, token):
        with pytest.raises(NotFound):
            invitations.resolve_invitation_by_token(token, setup["bob_p"], "accept")


class TestExpiry:
    """Expired invitations cannot be accepted but may be rejected."""

    @pytest.fixture()
    def created_at(self):
        return utcnow() - timedelta(days=10)

    @pytest.fixture()
    def stale(self, setup, created_at):
        return invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com", now=created_at
        )

    def test_effective_status_reports_expired(self, stale, created_at):
        assert stale.status == InvitationStatus.PENDING
        assert stale.effective_status() == InvitationStatus.EXPIRED
        assert (
            stale.effective_status(created_at + timedelta(days=1))
            == InvitationStatus.PENDING
        )
        assert stale.to_dict()["status"] == "expired"

    def test_expiry_boundary_is_expired(self, stale):
        assert stale.effective_status(stale.expires_at) == InvitationStatus.EXPIRED

    def test_accept_expired(self, setup, stale):
        with pytest.raises(InvitationExpired):
            invitations.resolve_invitation(stale.id, setup["bob_p"], "accept")
        assert _memberships(setup["team"].id, setup["bob"].id) == 0
        assert store.find_invitation(stale.id).status == InvitationStatus.PENDING

    def test_accept_after_sweep(self, setup, stale):
        assert invitations.expire_stale_invitations() == 1
        with pytest.raises(InvitationExpired):
            invitations.resolve_invitation(stale.id, setup["bob_p"], "accept")

    def test_reject_expired(self, setup, stale):
        result = invitations.resolve_invitation(stale.id, setup["bob_p"], "reject")
        assert result.status == InvitationStatus.REJECTED

    def test_reject_after_sweep(self, setup, stale):
        invitations.expire_stale_invitations()
        result = invitations.resolve_invitation(stale.id, setup["bob_p"], "reject")
        assert result.status == InvitationStatus.REJECTED

    def test_sweep_leaves_live_and_resolved_invitations(self, setup, stale):
        live = invitations.create_invitation(
            setup["team"].id, setup["owner"], "carol@example.com"
        )
        assert invitations.expire_stale_invitations() == 1
        assert invitations.expire_stale_invitations() == 0

        assert store.find_invitation(stale.id).status == InvitationStatus.EXPIRED
        assert store.find_invitation(live.id).status == InvitationStatus.PENDING


class TestConcurrency:
    """A resolution that loses a race must not leave partial state behind."""

    @pytest.fixture()
    def invitation(self, setup):
        return invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )

    def test_lost_claim_reports_conflict(self, setup, invitation, monkeypatch):
        real_claim = store.claim_invitation

        def claim_after_competitor(inv, *args, **kwargs):
            # Another request accepts first
            db.session.execute(
                update(TeamInvitation)
                .where(TeamInvitation.id == inv.id)
                .values(status=InvitationStatus.ACCEPTED, responded_at=utcnow())
            )
            db.session.commit()
            return real_claim(inv, *args, **kwargs)

        monkeypatch.setattr(store, "claim_invitation", claim_after_competitor)

        with pytest.raises(Conflict):
            invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")
        assert _memberships(setup["team"].id, setup["bob"].id) == 0
        assert (
            ActivityLog.query.filter_by(activity_type=ActivityType.MEMBER_JOINED).count()
            == 0
        )

    def test_duplicate_membership_rolls_back_claim(
        self, setup, invitation, factory, monkeypatch
    ):
        # A concurrent join lands between the membership check and the insert
        factory.member(setup["team"], setup["bob"])
        monkeypatch.setattr(store, "find_membership", lambda team_id, user_id: None)

        with pytest.raises(Conflict):
            invitations.resolve_invitation(invitation.id, setup["bob_p"], "accept")

        monkeypatch.undo()
        reloaded = store.find_invitation(invitation.id)
        db.session.refresh(reloaded)
        assert reloaded.status == InvitationStatus.PENDING
        assert reloaded.responded_at is None
        assert _memberships(setup["team"].id, setup["bob"].id) == 1


class TestSideEffectIsolation:
    """Notification and activity failures never fail the operation."""

    def test_notification_failure_is_logged(self, setup, monkeypatch, caplog):
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )

        def broken(**fields):
            raise PersistenceError()

        monkeypatch.setattr(store, "add_notification", broken)
        with caplog.at_level(logging.WARNING):
            result = invitations.resolve_invitation(
                invitation.id, setup["bob_p"], "accept"
            )

        assert result.status == InvitationStatus.ACCEPTED
        assert store.find_membership(setup["team"].id, setup["bob"].id) is not None
        assert "Failed to record notification" in caplog.text

    def test_activity_failure_is_logged(self, setup, monkeypatch, caplog):
        def broken(**fields):
            raise PersistenceError()

        monkeypatch.setattr(store, "add_activity", broken)
        with caplog.at_level(logging.WARNING):
            invitation = invitations.create_invitation(
                setup["team"].id, setup["owner"], "bob@example.com"
            )

        assert store.find_invitation(invitation.id) is not None
        assert "Failed to record team activity" in caplog.text

    def test_invitee_lookup_failure_after_accept(self, setup, monkeypatch, caplog):
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )
        invitation_id = invitation.id

        def broken(user_id):
            raise PersistenceError()

        monkeypatch.setattr(store, "find_user", broken)
        with caplog.at_level(logging.WARNING):
            result = invitations.resolve_invitation(
                invitation_id, setup["bob_p"], "accept"
            )

        assert result.status == InvitationStatus.ACCEPTED
        assert store.find_membership(setup["team"].id, setup["bob"].id) is not None
        assert "Error in invitation resolution notification" in caplog.text
        joined = ActivityLog.query.filter_by(
            activity_type=ActivityType.MEMBER_JOINED
        ).one()
        assert joined.user_id == setup["bob"].id

    def test_invitee_lookup_failure_after_reject(self, setup, monkeypatch, caplog):
        invitation = invitations.create_invitation(
            setup["team"].id, setup["owner"], "bob@example.com"
        )

        def broken(user_id):
            raise PersistenceError()

        monkeypatch.setattr(store, "find_user", broken)
        with caplog.at_level(logging.WARNING):
            result = invitations.resolve_invitation(
                invitation.id, setup["bob_p"], "reject"
            )

        assert result.status == InvitationStatus.REJECTED
        assert "Error in invitation resolution notification" in caplog.text
        assert (
            ActivityLog.query.filter_by(
                activity_type=ActivityType.INVITATION_REJECTED
            ).count()
            == 1
        )


class TestQueries:
    def test_count_pending_ignores_expired_and_resolved(self, setup, factory):
        other = factory.team(setup["alice"], name="Other Team")
        third = factory.team(setup["alice"], name="Third Team")
        invitations.create_invitation(setup["team"].id, setup["owner"], "bob@example.com")
        invitations.create_invitation(
            other.id,
            setup["owner"],
            "bob@example.com",
            now=utcnow() - timedelta(days=30),
        )
        rejected = invitations.create_invitation(
            third.id, setup["owner"], "bob@example.com"
        )
        invitations.resolve_invitation(rejected.id, setup["bob_p"], "reject")

        assert invitations.count_pending_invitations("bob@example.com") == 1
        assert invitations.count_pending_invitations("BOB@example.com") == 1
        assert invitations.count_pending_invitations("carol@example.com") == 0
        assert invitations.count_pending_invitations("") == 0

    def test_count_fails_soft(self, setup, monkeypatch, caplog):
        def broken(*args, **kwargs):
            raise PersistenceError()

        monkeypatch.setattr(store, "count_invitations", broken)
        with caplog.at_level(logging.ERROR):
            assert invitations.count_pending_invitations("bob@example.com") == 0
        assert "Error in pending invitation count" in caplog.text

    def test_list_for_user_newest_first(self, setup, factory):
        other = factory.team(setup["alice"], name="Other Team")
        first = invitations.create_invitation(
            setup["team"].id,
            setup["owner"],
            "bob@example.com",
            now=utcnow() - timedelta(hours=1),
        )
        second = invitations.create_invitation(other.id, setup["owner"], "bob@example.com")

        listed = invitations.list_invitations_for_user("bob@example.com")
        assert [inv.id for inv in listed] == [second.id, first.id]
        assert invitations.list_invitations_for_user("carol@example.com") == []

    def test_list_team_invitations_requires_invite_permission(self, setup, factory):
        invitations.create_invitation(setup["team"].id, setup["owner"], "bob@example.com")
        assert len(invitations.list_team_invitations(setup["team"].id, setup["owner"])) == 1

        factory.member(setup["team"], setup["carol"])
        with pytest.raises(Forbidden):
            invitations.list_team_invitations(setup["team"].id, setup["carol_p"])
        with pytest.raises(NotFound):
            invitations.list_team_invitations(9999, setup["owner"])
