"""
Notification helper functions for creating and managing user notifications.

Notifications are side effects of team and invitation events. They are
dispatched after the triggering change has been committed and a failure to
record one is logged and swallowed: it never undoes or fails the operation
that caused it.
"""

import logging
from datetime import timedelta

import structlog

from teamhub import store
from teamhub.error_utils import safe_log_error
from teamhub.exceptions import Forbidden, NotFound, ValidationError
from teamhub.models import NotificationType, utcnow

logger = structlog.get_logger(__name__)
_log = logging.getLogger(__name__)

DATE_RANGES = {
    "week": timedelta(days=7),
    "month": timedelta(days=30),
    "3months": timedelta(days=90),
}


def notify(
    recipient_id: int,
    notification_type: NotificationType,
    title: str,
    message: str,
    link_url: str | None = None,
    data: dict | None = None,
    team_id: int | None = None,
    actor_id: int | None = None,
):
    """
    Record an in-app notification for a user. Never raises.

    Args:
        recipient_id: ID of the user to notify
        notification_type: NotificationType tag
        title: Short headline
        message: Human-readable message
        link_url: Where the notification should lead (optional)
        data: Additional JSON payload (optional)
        team_id: ID of the related team (optional)
        actor_id: ID of the user who triggered the event (optional)

    Returns:
        The Notification, or None if it was skipped or could not be stored
    """
    # Don't notify the actor about their own actions
    if actor_id is not None and recipient_id == actor_id:
        return None

    try:
        notification = store.add_notification(
            user_id=recipient_id,
            notification_type=notification_type,
            title=title,
            message=message,
            link_url=link_url,
            data=data or {},
            team_id=team_id,
            actor_id=actor_id,
        )
    except Exception:
        safe_log_error(
            _log,
            "Failed to record notification",
            level=logging.WARNING,
            recipient_id=recipient_id,
            notification_type=getattr(notification_type, "value", notification_type),
            team_id=team_id,
        )
        return None

    logger.info(
        "notification_created",
        notification_id=notification.id,
        recipient_id=recipient_id,
        notification_type=notification_type.value,
    )
    return notification


def _team_link(team_id: int) -> str:
    return f"/teams/{team_id}"


# Invitation lifecycle


def notify_invitation_received(invitation, invitee_id: int):
    """Tell a registered invitee about a new invitation."""
    team = invitation.team
    inviter = invitation.invited_by
    return notify(
        invitee_id,
        NotificationType.TEAM_INVITATION,
        title=f"Invitation to {team.name}",
        message=f"{inviter.display_name} invited you to join '{team.name}' as {invitation.role.value}",
        link_url="/invitations",
        data={
            "invitation_id": invitation.id,
            "role": invitation.role.value,
            "expires_at": invitation.expires_at.isoformat(),
        },
        team_id=team.id,
        actor_id=inviter.id,
    )


def notify_invitation_accepted(invitation, invitee):
    """Tell the inviter their invitation was accepted."""
    team = invitation.team
    return notify(
        invitation.invited_by_id,
        NotificationType.TEAM_MEMBER_JOINED,
        title=f"New member in {team.name}",
        message=f"{invitee.display_name} accepted your invitation to '{team.name}'",
        link_url=_team_link(team.id),
        data={"invitation_id": invitation.id, "role": invitation.role.value},
        team_id=team.id,
        actor_id=invitee.id,
    )


def notify_invitation_rejected(invitation, invitee):
    """Tell the inviter their invitation was declined."""
    team = invitation.team
    return notify(
        invitation.invited_by_id,
        NotificationType.TEAM_INVITATION_REJECTED,
        title=f"Invitation to {team.name} declined",
        message=f"{invitee.display_name} declined your invitation to '{team.name}'",
        link_url=_team_link(team.id),
        data={"invitation_id": invitation.id},
        team_id=team.id,
        actor_id=invitee.id,
    )


# Membership changes


def notify_team_joined(team, new_member):
    """Tell the owner someone joined the team directly."""
    return notify(
        team.owner_id,
        NotificationType.TEAM_JOIN,
        title=f"New member in {team.name}",
        message=f"{new_member.display_name} joined '{team.name}'",
        link_url=_team_link(team.id),
        data={"user_id": new_member.id},
        team_id=team.id,
        actor_id=new_member.id,
    )


def notify_role_changed(team, target_user_id: int, old_role, new_role, actor_id: int):
    return notify(
        target_user_id,
        NotificationType.ROLE_UPDATE,
        title=f"Role updated in {team.name}",
        message=f"Your role in '{team.name}' changed from {old_role.value} to {new_role.value}",
        link_url=_team_link(team.id),
        data={"old_role": old_role.value, "new_role": new_role.value},
        team_id=team.id,
        actor_id=actor_id,
    )


def notify_member_removed(team, removed_user_id: int, actor_id: int):
    return notify(
        removed_user_id,
        NotificationType.MEMBER_REMOVED,
        title=f"Removed from {team.name}",
        message=f"You were removed from team '{team.name}'",
        data={"team_name": team.name},
        team_id=team.id,
        actor_id=actor_id,
    )


# Query helpers


def get_unread_count(user_id: int) -> int:
    """Get count of unread notifications for a user."""
    return store.count_unread_notifications(user_id)


def get_user_notifications(
    user_id: int,
    limit: int = 20,
    offset: int = 0,
    unread_only: bool = False,
    notification_type: str | None = None,
    date_range: str | None = None,
):
    """
    Get notifications for a user with pagination and filtering.

    Args:
        user_id: User ID
        limit: Maximum number of notifications to return
        offset: Offset for pagination
        unread_only: Only return unread notifications
        notification_type: Filter by notification type value (optional)
        date_range: Filter by date range: today, week, month, 3months (optional)

    Returns:
        Tuple of (list of Notification objects, total matching count)

    Raises:
        ValidationError: Unknown notification type or date range
    """
    type_filter = None
    if notification_type:
        try:
            type_filter = NotificationType(notification_type)
        except ValueError:
            raise ValidationError(f"Unknown notification type: {notification_type}")

    since = None
    if date_range:
        now = utcnow()
        if date_range == "today":
            since = now.replace(hour=0, minute=0, second=0, microsecond=0)
        elif date_range in DATE_RANGES:
            since = now - DATE_RANGES[date_range]
        else:
            raise ValidationError(f"Unknown date range: {date_range}")

    return store.list_notifications(
        user_id,
        limit=limit,
        offset=offset,
        unread_only=unread_only,
        notification_type=type_filter,
        since=since,
    )


def mark_as_read(notification_id: int, user_id: int):
    """
    Mark a single notification as read.

    Raises:
        NotFound: No such notification
        Forbidden: The notification belongs to another user
    """
    notification = store.find_notification(notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    if notification.user_id != user_id:
        raise Forbidden("Cannot modify another user's notification")
    store.mark_notification_read(notification, utcnow())
    return notification


def mark_all_as_read(user_id: int) -> int:
    """Mark all notifications as read for a user; returns how many changed."""
    return store.mark_all_notifications_read(user_id, utcnow())


def cleanup_read_notifications(retention_days: int, now=None) -> int:
    """Delete read notifications older than the retention period.

    Unread notifications are never deleted.
    """
    cutoff = (now or utcnow()) - timedelta(days=retention_days)
    deleted = store.delete_read_notifications(cutoff)
    logger.info(
        "notification_cleanup_complete",
        deleted=deleted,
        cutoff_date=cutoff.isoformat(),
    )
    return deleted
