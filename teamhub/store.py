"""
Persistence gateway for teams, memberships, invitations and notifications.

Every database access made by the service modules goes through this module.
SQLAlchemy failures are rolled back and re-raised as PersistenceError so
callers only ever see the application's error taxonomy.
"""
from datetime import datetime
from functools import wraps

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from teamhub.exceptions import Conflict, PersistenceError
from teamhub.models import (
    ActivityLog,
    InvitationStatus,
    Notification,
    Team,
    TeamInvitation,
    TeamMembership,
    TeamRole,
    User,
    db,
    utcnow,
)

logger = structlog.get_logger(__name__)


def _persistence(operation: str):
    """Wrap a gateway call so database errors surface as PersistenceError."""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.error(
                    "persistence_operation_failed",
                    operation=operation,
                    error=str(exc),
                )
                raise PersistenceError() from exc

        return wrapper

    return decorator


# Transaction control


@_persistence("commit")
def commit() -> None:
    db.session.commit()


def rollback() -> None:
    try:
        db.session.rollback()
    except SQLAlchemyError as exc:
        logger.warning("session_rollback_failed", error=str(exc))


# Users


@_persistence("find_user")
def find_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


@_persistence("find_user_by_email")
def find_user_by_email(email: str) -> User | None:
    return db.session.execute(
        select(User).where(func.lower(User.email) == email.lower())
    ).scalar_one_or_none()


@_persistence("find_user_by_username")
def find_user_by_username(username: str) -> User | None:
    return db.session.execute(
        select(User).where(User.username == username)
    ).scalar_one_or_none()


@_persistence("create_user")
def create_user(
    username: str, email: str, password: str, full_name: str | None = None
) -> User:
    """Insert and commit a new user.

    Raises:
        Conflict: Username or email is already taken
    """
    user = User(username=username, email=email.lower(), full_name=full_name)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise Conflict("Username or email is already registered") from exc
    return user


@_persistence("record_login")
def record_login(user: User, now: datetime) -> None:
    user.last_login = now
    db.session.commit()


# Teams


@_persistence("find_team")
def find_team(team_id: int) -> Team | None:
    return db.session.execute(
        select(Team).where(Team.id == team_id)
    ).scalar_one_or_none()


@_persistence("create_team")
def create_team(owner_id: int, name: str, description: str | None = None) -> Team:
    team = Team(owner_id=owner_id, name=name, description=description)
    db.session.add(team)
    db.session.flush()
    return team


@_persistence("delete_team")
def delete_team(team: Team) -> None:
    """Delete a team and its dependent rows.

    Notifications referencing the team are kept with their team reference
    cleared.
    """
    db.session.execute(
        update(Notification)
        .where(Notification.team_id == team.id)
        .values(team_id=None)
        .execution_options(synchronize_session=False)
    )
    db.session.delete(team)
    db.session.flush()


@_persistence("list_teams_for_user")
def list_teams_for_user(user_id: int) -> list[Team]:
    """Teams the user owns or belongs to, oldest first."""
    member_team_ids = select(TeamMembership.team_id).where(
        TeamMembership.user_id == user_id
    )
    return list(
        db.session.execute(
            select(Team)
            .where((Team.owner_id == user_id) | Team.id.in_(member_team_ids))
            .order_by(Team.created_at.asc(), Team.id.asc())
        ).scalars()
    )


# Memberships


@_persistence("find_membership")
def find_membership(team_id: int, user_id: int) -> TeamMembership | None:
    return db.session.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id, TeamMembership.user_id == user_id
        )
    ).scalar_one_or_none()


@_persistence("list_memberships")
def list_memberships(team_id: int) -> list[TeamMembership]:
    return list(
        db.session.execute(
            select(TeamMembership)
            .where(TeamMembership.team_id == team_id)
            .order_by(TeamMembership.joined_at.asc(), TeamMembership.id.asc())
        ).scalars()
    )


@_persistence("create_membership")
def create_membership(
    team_id: int,
    user_id: int,
    role: TeamRole,
    joined_at: datetime | None = None,
) -> TeamMembership:
    """Insert a membership row within the current transaction.

    Raises:
        Conflict: The (team, user) pair already exists; the whole
            transaction has been rolled back.
    """
    membership = TeamMembership(
        team_id=team_id,
        user_id=user_id,
        role=role,
        joined_at=joined_at or utcnow(),
    )
    db.session.add(membership)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        logger.info(
            "membership_insert_conflict", team_id=team_id, user_id=user_id
        )
        raise Conflict("User is already a member of this team") from exc
    return membership


@_persistence("update_membership_role")
def update_membership_role(membership: TeamMembership, role: TeamRole) -> None:
    membership.role = role
    db.session.flush()


@_persistence("delete_membership")
def delete_membership(membership: TeamMembership) -> None:
    db.session.delete(membership)
    db.session.flush()


# Invitations


@_persistence("find_invitation")
def find_invitation(invitation_id: int) -> TeamInvitation | None:
    return db.session.get(TeamInvitation, invitation_id)


@_persistence("find_invitation_by_token")
def find_invitation_by_token(token: str) -> TeamInvitation | None:
    return db.session.execute(
        select(TeamInvitation).where(TeamInvitation.token == token)
    ).scalar_one_or_none()


@_persistence("find_pending_invitation")
def find_pending_invitation(
    team_id: int, email: str, now: datetime
) -> TeamInvitation | None:
    """Pending, unexpired invitation for (team, email) if one exists."""
    return (
        db.session.execute(
            select(TeamInvitation)
            .where(
                TeamInvitation.team_id == team_id,
                TeamInvitation.email == email,
                TeamInvitation.status == InvitationStatus.PENDING,
                TeamInvitation.expires_at > now,
            )
            .order_by(TeamInvitation.created_at.desc())
        )
        .scalars()
        .first()
    )


@_persistence("create_invitation")
def create_invitation(
    team_id: int,
    invited_by_id: int,
    email: str,
    role: TeamRole,
    token: str,
    expires_at: datetime,
    created_at: datetime | None = None,
) -> TeamInvitation:
    invitation = TeamInvitation(
        team_id=team_id,
        invited_by_id=invited_by_id,
        email=email,
        role=role,
        token=token,
        status=InvitationStatus.PENDING,
        expires_at=expires_at,
        created_at=created_at or utcnow(),
    )
    db.session.add(invitation)
    db.session.flush()
    return invitation


@_persistence("claim_invitation")
def claim_invitation(
    invitation: TeamInvitation,
    from_statuses: tuple[InvitationStatus, ...],
    to_status: InvitationStatus,
    now: datetime,
    require_unexpired: bool = False,
) -> bool:
    """Conditionally move an invitation to ``to_status``.

    The UPDATE only matches while the stored status is one of
    ``from_statuses`` (and, with ``require_unexpired``, while
    ``expires_at > now``). Exactly one of several concurrent claims can
    match.

    Returns:
        bool: True if this call changed the row
    """
    stmt = update(TeamInvitation).where(
        TeamInvitation.id == invitation.id,
        TeamInvitation.status.in_(from_statuses),
    )
    if require_unexpired:
        stmt = stmt.where(TeamInvitation.expires_at > now)
    result = db.session.execute(
        stmt.values(status=to_status, responded_at=now).execution_options(
            synchronize_session=False
        )
    )
    if result.rowcount != 1:
        return False
    db.session.refresh(invitation)
    return True


@_persistence("count_invitations")
def count_invitations(email: str, status: InvitationStatus, now: datetime) -> int:
    """Count invitations for ``email`` in ``status``; pending ones must be unexpired."""
    stmt = select(func.count(TeamInvitation.id)).where(
        TeamInvitation.email == email.lower(),
        TeamInvitation.status == status,
    )
    if status == InvitationStatus.PENDING:
        stmt = stmt.where(TeamInvitation.expires_at > now)
    return db.session.execute(stmt).scalar() or 0


@_persistence("list_invitations_for_email")
def list_invitations_for_email(email: str) -> list[TeamInvitation]:
    return list(
        db.session.execute(
            select(TeamInvitation)
            .where(TeamInvitation.email == email.lower())
            .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.desc())
        ).scalars()
    )


@_persistence("list_team_invitations")
def list_team_invitations(team_id: int) -> list[TeamInvitation]:
    return list(
        db.session.execute(
            select(TeamInvitation)
            .where(TeamInvitation.team_id == team_id)
            .order_by(TeamInvitation.created_at.desc(), TeamInvitation.id.desc())
        ).scalars()
    )


@_persistence("expire_invitations")
def expire_invitations(now: datetime) -> int:
    """Persist the expired status on overdue pending invitations; commits."""
    result = db.session.execute(
        update(TeamInvitation)
        .where(
            TeamInvitation.status == InvitationStatus.PENDING,
            TeamInvitation.expires_at <= now,
        )
        .values(status=InvitationStatus.EXPIRED)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount or 0


# Notifications


@_persistence("add_notification")
def add_notification(**fields) -> Notification:
    """Insert and commit a notification row."""
    notification = Notification(**fields)
    db.session.add(notification)
    db.session.commit()
    return notification


@_persistence("find_notification")
def find_notification(notification_id: int) -> Notification | None:
    return db.session.get(Notification, notification_id)


@_persistence("list_notifications")
def list_notifications(
    user_id: int,
    limit: int = 20,
    offset: int = 0,
    unread_only: bool = False,
    notification_type=None,
    since: datetime | None = None,
) -> tuple[list[Notification], int]:
    """Page of a user's notifications, newest first, and the total matching."""
    filters = [Notification.user_id == user_id]
    if unread_only:
        filters.append(Notification.is_read.is_(False))
    if notification_type is not None:
        filters.append(Notification.notification_type == notification_type)
    if since is not None:
        filters.append(Notification.created_at >= since)

    total = (
        db.session.execute(
            select(func.count(Notification.id)).where(*filters)
        ).scalar()
        or 0
    )
    items = list(
        db.session.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )
    return items, total


@_persistence("count_unread_notifications")
def count_unread_notifications(user_id: int) -> int:
    return (
        db.session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        ).scalar()
        or 0
    )


@_persistence("mark_notification_read")
def mark_notification_read(notification: Notification, now: datetime) -> None:
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = now
    db.session.commit()


@_persistence("mark_all_notifications_read")
def mark_all_notifications_read(user_id: int, now: datetime) -> int:
    result = db.session.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=now)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount or 0


@_persistence("delete_read_notifications")
def delete_read_notifications(cutoff: datetime) -> int:
    """Delete read notifications read before ``cutoff``; unread rows are never touched."""
    result = db.session.execute(
        delete(Notification)
        .where(Notification.is_read.is_(True), Notification.read_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount or 0


# Activity log


@_persistence("add_activity")
def add_activity(**fields) -> ActivityLog:
    """Insert and commit an activity log entry."""
    activity = ActivityLog(**fields)
    db.session.add(activity)
    db.session.commit()
    return activity


@_persistence("list_team_activities")
def list_team_activities(
    team_id: int, limit: int = 50, offset: int = 0
) -> list[ActivityLog]:
    return list(
        db.session.execute(
            select(ActivityLog)
            .where(ActivityLog.team_id == team_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
            .limit(limit)
            .offset(offset)
        ).scalars()
    )
