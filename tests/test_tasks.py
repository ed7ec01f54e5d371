"""
Tests for scheduled background tasks.

Tasks are run synchronously against the test app; Celery scheduling itself
is only checked through the beat configuration.
"""
from datetime import timedelta
from unittest.mock import patch

from teamhub import invitations, notifications, store, teams
from teamhub.exceptions import PersistenceError
from teamhub.models import InvitationStatus, NotificationType, utcnow
from teamhub.principal import Principal
from teamhub.tasks.celery_app import make_celery
from teamhub.tasks.invitation_expiry import expire_stale_invitations_task
from teamhub.tasks.notification_cleanup import cleanup_old_notifications_task


def _seed_invitation(app, days_ago):
    """Create alice's team and an invitation for bob created ``days_ago`` days ago."""
    with app.app_context():
        alice = store.create_user("alice", "alice@example.com", "password123")
        store.create_user("bob", "bob@example.com", "password123")
        owner = Principal.from_user(alice)
        team = teams.create_team(owner, "Core Team")
        invitation = invitations.create_invitation(
            team.id,
            owner,
            "bob@example.com",
            now=utcnow() - timedelta(days=days_ago),
        )
        return invitation.id


class TestBeatSchedule:
    def test_periodic_tasks_registered(self):
        celery_app = make_celery()
        schedule = celery_app.conf.beat_schedule

        assert (
            schedule["expire-stale-invitations"]["task"]
            == "teamhub.tasks.invitation_expiry.expire_stale_invitations_task"
        )
        assert (
            schedule["cleanup-old-notifications"]["task"]
            == "teamhub.tasks.notification_cleanup.cleanup_old_notifications_task"
        )
        assert schedule["cleanup-old-notifications"]["schedule"] == 86400.0


class TestInvitationExpiryTask:
    """Test the stale invitation sweep."""

    def test_expires_overdue_invitations(self, app):
        invitation_id = _seed_invitation(app, days_ago=8)

        with patch(
            "teamhub.tasks.invitation_expiry.create_app", return_value=app
        ):
            result = expire_stale_invitations_task.run()

        assert result == {"expired": 1}
        with app.app_context():
            invitation = store.find_invitation(invitation_id)
            assert invitation.status == InvitationStatus.EXPIRED

    def test_leaves_live_invitations(self, app):
        invitation_id = _seed_invitation(app, days_ago=1)

        with patch(
            "teamhub.tasks.invitation_expiry.create_app", return_value=app
        ):
            result = expire_stale_invitations_task.run()

        assert result == {"expired": 0}
        with app.app_context():
            invitation = store.find_invitation(invitation_id)
            assert invitation.status == InvitationStatus.PENDING

    @patch("teamhub.tasks.invitation_expiry.expire_stale_invitations")
    def test_database_failure_is_reported(self, mock_expire, app):
        mock_expire.side_effect = PersistenceError()

        with patch(
            "teamhub.tasks.invitation_expiry.create_app", return_value=app
        ):
            result = expire_stale_invitations_task.run()

        assert result["expired"] == 0
        assert "error" in result


class TestNotificationCleanupTask:
    """Test cleanup of old read notifications."""

    def test_deletes_old_read_notifications(self, app):
        with app.app_context():
            alice = store.create_user("alice", "alice@example.com", "password123")
            old = notifications.notify(
                alice.id, NotificationType.TEAM_JOIN, "Joined", "Someone joined"
            )
            fresh = notifications.notify(
                alice.id, NotificationType.TEAM_JOIN, "Joined", "Someone joined"
            )
            unread = notifications.notify(
                alice.id, NotificationType.TEAM_JOIN, "Joined", "Someone joined"
            )
            store.mark_notification_read(old, utcnow() - timedelta(days=40))
            store.mark_notification_read(fresh, utcnow())
            ids = (old.id, fresh.id, unread.id)

        with patch(
            "teamhub.tasks.notification_cleanup.create_app", return_value=app
        ):
            result = cleanup_old_notifications_task.run(retention_days=30)

        assert result["deleted"] == 1
        with app.app_context():
            old_id, fresh_id, unread_id = ids
            assert store.find_notification(old_id) is None
            assert store.find_notification(fresh_id) is not None
            assert store.find_notification(unread_id) is not None

    def test_nothing_to_delete(self, app):
        with patch(
            "teamhub.tasks.notification_cleanup.create_app", return_value=app
        ):
            result = cleanup_old_notifications_task.run()

        assert result["deleted"] == 0
        assert "0 read notification(s)" in result["message"]

    @patch("teamhub.tasks.notification_cleanup.cleanup_read_notifications")
    def test_database_failure_is_reported(self, mock_cleanup, app):
        mock_cleanup.side_effect = PersistenceError()

        with patch(
            "teamhub.tasks.notification_cleanup.create_app", return_value=app
        ):
            result = cleanup_old_notifications_task.run()

        assert result["deleted"] == 0
        assert "error" in result

