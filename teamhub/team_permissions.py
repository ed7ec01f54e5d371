"""
Team permission checking utilities.

Every permission decision about teams goes through the predicates in this
module. They are pure: callers fetch the team and the actor's membership
row (or None) first and pass them in, so the same rules apply to HTTP
handlers, the invitation engine and background tasks alike.
"""

from teamhub.models import TeamRole


def parse_assignable_role(value):
    """
    Resolve a role name into an assignable TeamRole.

    Args:
        value: TeamRole or role name ("member" / "admin", case-insensitive)

    Returns:
        TeamRole or None if the value is not an assignable role
    """
    if isinstance(value, TeamRole):
        role = value
    elif isinstance(value, str):
        try:
            role = TeamRole(value.strip().lower())
        except ValueError:
            return None
    else:
        return None
    return role if role in TeamRole.assignable() else None


def _actor_membership(team, actor_id, membership):
    # Ignore a membership row that belongs to someone else or another team
    if membership is None:
        return None
    if membership.team_id != team.id or membership.user_id != actor_id:
        return None
    return membership


def get_team_role(team, user_id, membership=None):
    """
    Get a user's role in a team.

    Args:
        team: Team instance
        user_id: User ID
        membership: The user's TeamMembership in this team, if any

    Returns:
        TeamRole or None if user is not a member
    """
    if team.owner_id == user_id:
        return TeamRole.OWNER
    membership = _actor_membership(team, user_id, membership)
    return membership.role if membership else None


def _is_owner_or_admin(team, actor, membership) -> bool:
    return get_team_role(team, actor.id, membership) in (TeamRole.OWNER, TeamRole.ADMIN)


def can_view_team(team, actor, membership=None) -> bool:
    """Owner and any member can see the team and its member list."""
    return get_team_role(team, actor.id, membership) is not None


def can_invite(team, actor, membership=None) -> bool:
    """Owner and admins can send invitations."""
    return _is_owner_or_admin(team, actor, membership)


def can_change_role(team, actor, membership, target_user_id, new_role) -> bool:
    """
    Check if the actor can set ``target_user_id``'s role to ``new_role``.

    Args:
        team: Team instance
        actor: Acting Principal
        membership: Actor's membership in the team, if any
        target_user_id: User whose role would change
        new_role: TeamRole or role name

    Returns:
        bool: True if permitted
    """
    if target_user_id == team.owner_id:
        return False
    if parse_assignable_role(new_role) is None:
        return False
    return _is_owner_or_admin(team, actor, membership)


def can_remove_member(team, actor, membership, target_user_id) -> bool:
    """Members may leave; owner and admins may remove anyone but the owner."""
    if target_user_id == team.owner_id:
        return False
    if target_user_id == actor.id:
        return True
    return _is_owner_or_admin(team, actor, membership)


def can_delete_team(team, actor) -> bool:
    """Only the team owner can delete."""
    return team.owner_id == actor.id
