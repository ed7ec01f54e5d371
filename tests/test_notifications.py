"""Tests for notification helpers."""
from datetime import timedelta

import pytest

from teamhub import notifications, store
from teamhub.exceptions import Forbidden, NotFound, ValidationError
from teamhub.models import Notification, NotificationType, utcnow


@pytest.fixture()
def users(factory):
    return factory.user("alice"), factory.user("bob")


def _notify(recipient, actor=None, notification_type=NotificationType.TEAM_JOIN):
    return notifications.notify(
        recipient.id,
        notification_type,
        title="Something happened",
        message="Details",
        actor_id=actor.id if actor else None,
    )


class TestNotify:
    def test_creates_unread_notification(self, users):
        alice, bob = users
        notification = _notify(alice, actor=bob)
        assert notification.id is not None
        assert notification.is_read is False
        assert notification.data == {}

        payload = notification.to_dict()
        assert payload["type"] == "team_join"
        assert payload["actor"] == {"id": bob.id, "username": "bob"}

    def test_actor_is_not_notified_of_own_action(self, users):
        alice, _ = users
        assert _notify(alice, actor=alice) is None
        assert Notification.query.count() == 0

    def test_store_failure_returns_none(self, users, monkeypatch):
        alice, bob = users

        def broken(**fields):
            raise RuntimeError("db gone")

        monkeypatch.setattr(store, "add_notification", broken)
        assert _notify(alice, actor=bob) is None


class TestQueries:
    def test_unread_count_and_mark_read(self, users):
        alice, bob = users
        first = _notify(alice, actor=bob)
        _notify(alice, actor=bob)
        _notify(bob, actor=alice)
        assert notifications.get_unread_count(alice.id) == 2

        notifications.mark_as_read(first.id, alice.id)
        assert notifications.get_unread_count(alice.id) == 1
        assert store.find_notification(first.id).read_at is not None

    def test_mark_read_is_idempotent(self, users):
        alice, bob = users
        notification = _notify(alice, actor=bob)
        notifications.mark_as_read(notification.id, alice.id)
        read_at = store.find_notification(notification.id).read_at
        notifications.mark_as_read(notification.id, alice.id)
        assert store.find_notification(notification.id).read_at == read_at

    def test_mark_read_other_users_notification(self, users):
        alice, bob = users
        notification = _notify(alice, actor=bob)
        with pytest.raises(Forbidden):
            notifications.mark_as_read(notification.id, bob.id)

    def test_mark_read_missing(self, users):
        alice, _ = users
        with pytest.raises(NotFound):
            notifications.mark_as_read(12345, alice.id)

    def test_mark_all_as_read(self, users):
        alice, bob = users
        for _ in range(3):
            _notify(alice, actor=bob)
        _notify(bob, actor=alice)

        assert notifications.mark_all_as_read(alice.id) == 3
        assert notifications.mark_all_as_read(alice.id) == 0
        assert notifications.get_unread_count(bob.id) == 1

    def test_pagination_and_filters(self, users):
        alice, bob = users
        joined = [_notify(alice, actor=bob) for _ in range(3)]
        role = _notify(alice, actor=bob, notification_type=NotificationType.ROLE_UPDATE)
        notifications.mark_as_read(joined[0].id, alice.id)

        items, total = notifications.get_user_notifications(alice.id, limit=2)
        assert total == 4
        assert [n.id for n in items] == [role.id, joined[2].id]

        items, total = notifications.get_user_notifications(alice.id, limit=2, offset=2)
        assert [n.id for n in items] == [joined[1].id, joined[0].id]

        items, total = notifications.get_user_notifications(alice.id, unread_only=True)
        assert total == 3

        items, total = notifications.get_user_notifications(
            alice.id, notification_type="role_update"
        )
        assert [n.id for n in items] == [role.id]

        _, total = notifications.get_user_notifications(alice.id, date_range="today")
        assert total == 4

    @pytest.mark.parametrize(
        "kwargs", [{"notification_type": "bogus"}, {"date_range": "decade"}]
    )
    def test_invalid_filters(self, users, kwargs):
        alice, _ = users
        with pytest.raises(ValidationError):
            notifications.get_user_notifications(alice.id, **kwargs)


class TestCleanup:
    def test_deletes_only_old_read_notifications(self, users):
        alice, bob = users
        now = utcnow()
        old_read = _notify(alice, actor=bob)
        recent_read = _notify(alice, actor=bob)
        old_unread = _notify(alice, actor=bob)
        store.mark_notification_read(old_read, now - timedelta(days=45))
        store.mark_notification_read(recent_read, now - timedelta(days=2))
        old_id, recent_id, unread_id = old_read.id, recent_read.id, old_unread.id

        deleted = notifications.cleanup_read_notifications(30, now=now)

        assert deleted == 1
        assert store.find_notification(old_id) is None
        assert store.find_notification(recent_id) is not None
        assert store.find_notification(unread_id) is not None
