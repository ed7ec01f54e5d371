"""
Database models for the TeamHub application.

This module contains all SQLAlchemy models defining the database schema
for users, teams, memberships, invitations, notifications and the
activity log.
"""
from datetime import datetime, timezone
from enum import Enum

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import check_password_hash, generate_password_hash

from teamhub.exceptions import Conflict, InvitationExpired

# Initialize SQLAlchemy instance
db = SQLAlchemy()


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TeamRole(Enum):
    """
    Enumeration for team roles.

    - OWNER: Implicit role of Team.owner; never stored on a membership row
    - ADMIN: Can invite, change roles and remove members
    - MEMBER: Regular team member
    """

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

    @classmethod
    def assignable(cls) -> tuple["TeamRole", ...]:
        """Roles that can be stored on a membership or offered by an invitation."""
        return (cls.MEMBER, cls.ADMIN)


class InvitationStatus(Enum):
    """
    Lifecycle states of a team invitation.

    PENDING is the only non-terminal state. A pending invitation whose
    expires_at has passed is reported as EXPIRED even before the periodic
    sweep persists that status.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class InvitationAction(Enum):
    """Actions an invitee can take on an invitation."""

    ACCEPT = "accept"
    REJECT = "reject"


class NotificationType(Enum):
    """Type tags for in-app notifications."""

    TEAM_INVITATION = "team_invitation"
    TEAM_MEMBER_JOINED = "team_member_joined"
    TEAM_INVITATION_REJECTED = "team_invitation_rejected"
    TEAM_JOIN = "team_join"
    ROLE_UPDATE = "role_update"
    MEMBER_REMOVED = "member_removed"


class ActivityType(Enum):
    """
    Enumeration for activity log types.

    - TEAM_CREATED / TEAM_DELETED: Team lifecycle
    - INVITATION_SENT: An admin or owner invited someone
    - INVITATION_REJECTED: The invitee declined
    - MEMBER_JOINED: Invitation accepted or team joined directly
    - MEMBER_REMOVED / MEMBER_LEFT: Membership row deleted
    - MEMBER_ROLE_CHANGED: Membership role updated
    """

    TEAM_CREATED = "team_created"
    TEAM_DELETED = "team_deleted"
    INVITATION_SENT = "invitation_sent"
    INVITATION_REJECTED = "invitation_rejected"
    MEMBER_JOINED = "member_joined"
    MEMBER_REMOVED = "member_removed"
    MEMBER_LEFT = "member_left"
    MEMBER_ROLE_CHANGED = "member_role_changed"


def _enum_column(enum_cls, name: str, **kwargs):
    return db.Column(
        db.Enum(
            enum_cls,
            name=name,
            values_callable=lambda enum: [e.value for e in enum],
        ),
        **kwargs,
    )


class User(UserMixin, db.Model):
    """
    User model for authentication.

    Invitations can only be addressed to registered users, so the email
    column doubles as the invitee identifier.
    """

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(200))

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    last_login = db.Column(db.DateTime)

    def set_password(self, password: str) -> None:
        """
        Hash and set the user's password.

        Args:
            password: Plain text password to hash
        """
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """
        Check if the provided password matches the stored hash.

        Args:
            password: Plain text password to verify

        Returns:
            bool: True if password matches, False otherwise
        """
        return check_password_hash(self.password_hash, password)

    @property
    def display_name(self) -> str:
        """Full name when set, otherwise the username."""
        return self.full_name or self.username

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class Team(db.Model):
    """
    Team model for collaboration features.

    Each team has exactly one owner, tracked only through owner_id, and
    any number of members with the admin or member role.
    """

    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text)

    # Team ownership
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    owner = db.relationship(
        "User",
        foreign_keys=[owner_id],
        backref=db.backref("owned_teams", lazy="dynamic"),
    )

    memberships = db.relationship(
        "TeamMembership",
        back_populates="team",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    invitations = db.relationship(
        "TeamInvitation",
        back_populates="team",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Team {self.id} '{self.name}'>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "owner_id": self.owner_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class TeamMembership(db.Model):
    """
    Association model for team members.

    Tracks which users belong to which teams and their roles.
    """

    __tablename__ = "team_memberships"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    role = _enum_column(TeamRole, "teamrole", nullable=False, default=TeamRole.MEMBER)

    # Timestamps
    joined_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    team = db.relationship("Team", back_populates="memberships")
    user = db.relationship(
        "User",
        backref=db.backref(
            "team_memberships", lazy="dynamic", cascade="all, delete-orphan"
        ),
    )

    # A user can only be in a team once; concurrent joins race on this constraint
    __table_args__ = (
        db.UniqueConstraint("team_id", "user_id", name="unique_team_member"),
    )

    def __repr__(self) -> str:
        return f"<TeamMembership team={self.team_id} user={self.user_id} role={self.role.value}>"

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "full_name": self.user.full_name if self.user else None,
            "email": self.user.email if self.user else None,
            "role": self.role.value,
            "joined_at": self.joined_at.isoformat() if self.joined_at else None,
        }


class TeamInvitation(db.Model):
    """
    Team invitation model.

    An invitation is bound to an email address at creation time. It is
    resolved exactly once by the user owning that address and is kept
    afterwards as an audit trail.
    """

    __tablename__ = "team_invitations"

    id = db.Column(db.Integer, primary_key=True)

    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    invited_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)

    # Role to assign when accepted
    role = _enum_column(TeamRole, "teamrole", nullable=False, default=TeamRole.MEMBER)

    # Single-use token for link-based acceptance
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)

    status = _enum_column(
        InvitationStatus,
        "invitationstatus",
        nullable=False,
        default=InvitationStatus.PENDING,
    )

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    responded_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    team = db.relationship("Team", back_populates="invitations")
    invited_by = db.relationship("User", foreign_keys=[invited_by_id])

    __table_args__ = (
        db.Index("ix_team_invitations_team_email", "team_id", "email"),
    )

    def __repr__(self) -> str:
        return f"<TeamInvitation {self.email} → Team {self.team_id} ({self.status.value})>"

    def effective_status(self, now: datetime | None = None) -> InvitationStatus:
        """Status as observed at ``now``, reporting overdue pending rows as expired."""
        now = now or utcnow()
        if self.status == InvitationStatus.PENDING and now >= self.expires_at:
            return InvitationStatus.EXPIRED
        return self.status

    def transition(
        self, action: InvitationAction, now: datetime | None = None
    ) -> InvitationStatus:
        """
        Compute the status ``action`` moves this invitation into.

        Does not mutate the row; the caller persists the result with a
        conditional update so concurrent resolutions cannot both win.

        Args:
            action: Accept or reject
            now: Evaluation time (defaults to utcnow)

        Returns:
            InvitationStatus: ACCEPTED or REJECTED

        Raises:
            Conflict: The invitation was already accepted or rejected
            InvitationExpired: Accept attempted past expiry
        """
        current = self.effective_status(now)

        if current in (InvitationStatus.ACCEPTED, InvitationStatus.REJECTED):
            raise Conflict("Invitation has already been processed")

        if action == InvitationAction.ACCEPT:
            if current == InvitationStatus.EXPIRED:
                raise InvitationExpired()
            return InvitationStatus.ACCEPTED

        # Rejecting an expired invitation is harmless
        return InvitationStatus.REJECTED

    @staticmethod
    def claimable_statuses(action: InvitationAction) -> tuple[InvitationStatus, ...]:
        """Stored statuses from which ``action`` may be applied."""
        if action == InvitationAction.ACCEPT:
            return (InvitationStatus.PENDING,)
        return (InvitationStatus.PENDING, InvitationStatus.EXPIRED)

    def to_dict(self, now: datetime | None = None) -> dict:
        """Convert invitation to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "team_id": self.team_id,
            "team_name": self.team.name if self.team else None,
            "email": self.email,
            "role": self.role.value,
            "status": self.effective_status(now).value,
            "invited_by": {
                "id": self.invited_by.id,
                "username": self.invited_by.username,
                "name": self.invited_by.display_name,
            }
            if self.invited_by
            else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "responded_at": self.responded_at.isoformat()
            if self.responded_at
            else None,
        }


class Notification(db.Model):
    """
    Notification model for in-app user notifications.

    Created as a side effect of team lifecycle events. Only the read
    flag is mutated afterwards.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)

    # Recipient
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    notification_type = _enum_column(
        NotificationType, "notificationtype", nullable=False
    )

    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link_url = db.Column(db.String(500), nullable=True)
    data = db.Column(db.JSON, nullable=True)

    # Context; team_id is cleared when the team is deleted
    team_id = db.Column(
        db.Integer, db.ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # Read status
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    read_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    # Relationships
    user = db.relationship(
        "User",
        foreign_keys=[user_id],
        backref=db.backref("notifications", lazy="dynamic"),
    )
    actor = db.relationship("User", foreign_keys=[actor_id])

    __table_args__ = (
        db.Index("ix_notifications_user_created", user_id, created_at.desc()),
        db.Index("ix_notifications_user_read", user_id, is_read),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.id} {self.notification_type.value} for user {self.user_id}>"

    def to_dict(self) -> dict:
        """Convert notification to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.notification_type.value,
            "title": self.title,
            "message": self.message,
            "link_url": self.link_url,
            "data": self.data,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "team_id": self.team_id,
            "actor": {
                "id": self.actor.id,
                "username": self.actor.username,
            }
            if self.actor
            else None,
        }


class ActivityLog(db.Model):
    """
    Activity log for team membership events.

    Records invitations, joins, removals and role changes as an audit
    trail. Entries for a deleted team are removed with it; the deletion
    itself is recorded without a team reference.
    """

    __tablename__ = "activity_logs"

    id = db.Column(db.Integer, primary_key=True)

    activity_type = _enum_column(ActivityType, "activitytype", nullable=False)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=True)

    # Examples:
    # - MEMBER_ROLE_CHANGED: {"old_role": "member", "new_role": "admin", "target_user_id": 3}
    # - INVITATION_SENT: {"email": "x@example.com", "role": "member"}
    context = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    user = db.relationship("User", backref=db.backref("activities", lazy="dynamic"))
    team = db.relationship(
        "Team",
        backref=db.backref("activities", lazy="dynamic", cascade="all, delete-orphan"),
    )

    __table_args__ = (
        db.Index("idx_activity_team_created", "team_id", "created_at"),
        db.Index("idx_activity_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog {self.activity_type.value} user={self.user_id} team={self.team_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "activity_type": self.activity_type.value,
            "user_id": self.user_id,
            "user": {
                "id": self.user.id,
                "username": self.user.username,
            }
            if self.user
            else None,
            "team_id": self.team_id,
            "context": self.context,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
