"""
Activity logging utilities for team collaboration.

This module provides helper functions to log membership activities for
audit trails and the team activity feed. Entries are written after the
change they describe has been committed; a failed write is logged and
ignored.
"""

import logging
from typing import Optional

import structlog

from teamhub import store
from teamhub.error_utils import safe_log_error
from teamhub.models import ActivityLog, ActivityType

logger = structlog.get_logger(__name__)
_log = logging.getLogger(__name__)


def log_activity(
    activity_type: ActivityType,
    user_id: int,
    team_id: Optional[int] = None,
    context: Optional[dict] = None,
) -> Optional[ActivityLog]:
    """
    Log an activity to the activity log.

    Args:
        activity_type: Type of activity being logged
        user_id: ID of the user who performed the activity
        team_id: Team associated with the activity (optional)
        context: Additional context data (optional)

    Returns:
        ActivityLog: The created entry, or None if it could not be stored

    Example:
        log_activity(
            ActivityType.MEMBER_ROLE_CHANGED,
            user_id=actor.id,
            team_id=team.id,
            context={"target_user_id": 7, "old_role": "member", "new_role": "admin"}
        )
    """
    try:
        return store.add_activity(
            activity_type=activity_type,
            user_id=user_id,
            team_id=team_id,
            context=context,
        )
    except Exception:
        safe_log_error(
            _log,
            "Failed to record team activity",
            level=logging.WARNING,
            activity_type=activity_type.value,
            user_id=user_id,
            team_id=team_id,
        )
        return None


def log_team_created(team, user_id: int):
    """Log team creation activity."""
    return log_activity(
        ActivityType.TEAM_CREATED,
        user_id=user_id,
        team_id=team.id,
        context={"team_name": team.name},
    )


def log_team_deleted(team_id: int, team_name: str, user_id: int):
    """Log team deletion; the team row is gone so only its id is kept in context."""
    return log_activity(
        ActivityType.TEAM_DELETED,
        user_id=user_id,
        context={"team_id": team_id, "team_name": team_name},
    )


def log_invitation_sent(invitation, user_id: int):
    return log_activity(
        ActivityType.INVITATION_SENT,
        user_id=user_id,
        team_id=invitation.team_id,
        context={
            "invitation_id": invitation.id,
            "email": invitation.email,
            "role": invitation.role.value,
        },
    )


def log_invitation_rejected(invitation, user_id: int):
    return log_activity(
        ActivityType.INVITATION_REJECTED,
        user_id=user_id,
        team_id=invitation.team_id,
        context={"invitation_id": invitation.id, "email": invitation.email},
    )


def log_member_joined(team, user_id: int, role, invitation_id: Optional[int] = None):
    """
    Log a user joining a team.

    Args:
        team: Team the user joined
        user_id: The new member
        role: Role assigned
        invitation_id: Invitation that was accepted, if any
    """
    context = {"role": role.value}
    if invitation_id is not None:
        context["invitation_id"] = invitation_id
    return log_activity(
        ActivityType.MEMBER_JOINED, user_id=user_id, team_id=team.id, context=context
    )


def log_member_removed(team, target_user_id: int, user_id: int):
    """
    Log member removal from team.

    Args:
        team: Team the member was removed from
        target_user_id: User who was removed
        user_id: User who removed the member
    """
    return log_activity(
        ActivityType.MEMBER_REMOVED,
        user_id=user_id,
        team_id=team.id,
        context={"target_user_id": target_user_id},
    )


def log_member_left(team, user_id: int):
    """Log member leaving team voluntarily."""
    return log_activity(ActivityType.MEMBER_LEFT, user_id=user_id, team_id=team.id)


def log_member_role_changed(team, target_user_id: int, old_role, new_role, user_id: int):
    """
    Log member role change.

    Args:
        team: Team where role was changed
        target_user_id: User whose role was changed
        old_role: Previous TeamRole
        new_role: New TeamRole
        user_id: User who changed the role
    """
    return log_activity(
        ActivityType.MEMBER_ROLE_CHANGED,
        user_id=user_id,
        team_id=team.id,
        context={
            "target_user_id": target_user_id,
            "old_role": old_role.value,
            "new_role": new_role.value,
        },
    )


def get_team_activities(
    team_id: int, limit: int = 50, offset: int = 0
) -> list[ActivityLog]:
    """
    Get recent activities for a team.

    Args:
        team_id: Team ID to fetch activities for
        limit: Maximum number of activities to return
        offset: Number of activities to skip (for pagination)

    Returns:
        List of ActivityLog entries
    """
    return store.list_team_activities(team_id, limit=limit, offset=offset)
