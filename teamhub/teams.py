"""
Team and membership operations.

Each operation checks existence and permissions before writing, commits
its change, and then emits notifications and activity entries.
"""

import logging

import structlog

from teamhub import activity, notifications, store
from teamhub.error_utils import best_effort
from teamhub.exceptions import (
    Conflict,
    Forbidden,
    InvalidOperation,
    NotFound,
    TeamHubError,
    ValidationError,
)
from teamhub.models import TeamRole
from teamhub.team_permissions import (
    can_change_role,
    can_delete_team,
    can_remove_member,
    can_view_team,
    parse_assignable_role,
)

logger = structlog.get_logger(__name__)
_log = logging.getLogger(__name__)

MAX_TEAM_NAME_LENGTH = 128


def _get_team(team_id):
    team = store.find_team(team_id)
    if team is None:
        raise NotFound("Team not found")
    return team


def create_team(owner, name, description=None):
    """
    Create a team owned by ``owner``.

    Raises:
        ValidationError: Name is empty or longer than 128 characters
    """
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Team name is required")
    if len(name) > MAX_TEAM_NAME_LENGTH:
        raise ValidationError(
            f"Team name must be at most {MAX_TEAM_NAME_LENGTH} characters"
        )
    if description is not None and not isinstance(description, str):
        raise ValidationError("Description must be a string")

    try:
        team = store.create_team(owner.id, name, (description or "").strip() or None)
        team_id = team.id
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    logger.info("team_created", team_id=team_id, owner_id=owner.id)
    with best_effort(_log, "team creation side effects", team_id=team_id):
        activity.log_team_created(team, user_id=owner.id)
    return team


def get_team(team_id, actor):
    """
    Fetch a team visible to the actor.

    Returns:
        Tuple of (Team, actor's TeamRole)
    """
    team = _get_team(team_id)
    membership = store.find_membership(team.id, actor.id)
    if not can_view_team(team, actor, membership):
        raise Forbidden("You are not a member of this team")
    role = TeamRole.OWNER if team.owner_id == actor.id else membership.role
    return team, role


def list_members(team_id, actor):
    """Members of a team (owner excluded), oldest first."""
    team, _ = get_team(team_id, actor)
    return team, store.list_memberships(team.id)


def list_teams_for_user(actor):
    """Teams the actor owns or belongs to."""
    return store.list_teams_for_user(actor.id)


def change_role(team_id, actor, target_user_id, new_role):
    """
    Change a member's role.

    Args:
        team_id: Team ID
        actor: Acting Principal
        target_user_id: Member whose role changes
        new_role: "member" or "admin"

    Returns:
        TeamMembership: The updated membership

    Raises:
        NotFound: Team missing, or target is not a member
        InvalidOperation: Target is the team owner
        ValidationError: Unknown role
        Forbidden: Actor is neither owner nor admin
    """
    team = _get_team(team_id)
    if target_user_id == team.owner_id:
        raise InvalidOperation("Cannot change the role of the team owner")

    role = parse_assignable_role(new_role)
    if role is None:
        raise ValidationError("Role must be 'member' or 'admin'")

    actor_membership = store.find_membership(team.id, actor.id)
    if not can_change_role(team, actor, actor_membership, target_user_id, role):
        raise Forbidden("Only team owners and admins can change roles")

    membership = store.find_membership(team.id, target_user_id)
    if membership is None:
        raise NotFound("User is not a member of this team")

    old_role = membership.role
    if old_role == role:
        return membership

    team_id = team.id
    try:
        store.update_membership_role(membership, role)
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    logger.info(
        "team_member_role_changed",
        team_id=team_id,
        target_user_id=target_user_id,
        old_role=old_role.value,
        new_role=role.value,
        actor_id=actor.id,
    )
    with best_effort(_log, "role change side effects", team_id=team_id):
        notifications.notify_role_changed(
            team, target_user_id, old_role, role, actor.id
        )
        activity.log_member_role_changed(
            team, target_user_id, old_role, role, user_id=actor.id
        )
    return membership


def remove_member(team_id, actor, target_user_id):
    """
    Remove a member, or leave the team when ``target_user_id`` is the actor.

    Raises:
        NotFound: Team missing, or target is not a member
        InvalidOperation: Target is the team owner
        Forbidden: Actor may not remove other members
    """
    team = _get_team(team_id)
    if target_user_id == team.owner_id:
        raise InvalidOperation("The team owner cannot be removed")

    actor_membership = store.find_membership(team.id, actor.id)
    if not can_remove_member(team, actor, actor_membership, target_user_id):
        raise Forbidden("Only team owners and admins can remove members")

    membership = (
        actor_membership
        if target_user_id == actor.id
        else store.find_membership(team.id, target_user_id)
    )
    if membership is None:
        raise NotFound("User is not a member of this team")

    team_id = team.id
    try:
        store.delete_membership(membership)
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    self_removal = target_user_id == actor.id
    logger.info(
        "team_member_removed",
        team_id=team_id,
        target_user_id=target_user_id,
        actor_id=actor.id,
        self_removal=self_removal,
    )
    with best_effort(_log, "member removal side effects", team_id=team_id):
        if self_removal:
            activity.log_member_left(team, user_id=actor.id)
        else:
            notifications.notify_member_removed(team, target_user_id, actor.id)
            activity.log_member_removed(team, target_user_id, user_id=actor.id)


def delete_team(team_id, actor):
    """
    Delete a team together with its memberships and invitations.

    Raises:
        NotFound: Team does not exist
        Forbidden: Actor is not the owner
    """
    team = _get_team(team_id)
    if not can_delete_team(team, actor):
        raise Forbidden("Only the team owner can delete the team")

    deleted_id, deleted_name = team.id, team.name
    try:
        store.delete_team(team)
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    logger.info("team_deleted", team_id=deleted_id, actor_id=actor.id)
    activity.log_team_deleted(deleted_id, deleted_name, user_id=actor.id)


def join_team(team_id, actor):
    """
    Join a team directly as a member.

    Raises:
        NotFound: Team does not exist
        Conflict: Actor is the owner or already a member
    """
    team = _get_team(team_id)
    if team.owner_id == actor.id or store.find_membership(team.id, actor.id):
        raise Conflict("You are already a member of this team")

    team_id = team.id
    try:
        membership = store.create_membership(team_id, actor.id, TeamRole.MEMBER)
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    logger.info("team_joined", team_id=team_id, user_id=actor.id)
    with best_effort(_log, "team join notification", team_id=team_id):
        new_member = store.find_user(actor.id)
        if new_member is not None:
            notifications.notify_team_joined(team, new_member)
    with best_effort(_log, "team join activity", team_id=team_id):
        activity.log_member_joined(team, actor.id, TeamRole.MEMBER)
    return membership
