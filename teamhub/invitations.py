"""
Team invitation lifecycle.

Invitations move from pending to exactly one of accepted, rejected or
expired. Creation validates the inviter's permission and the invitee,
resolution is claimed with a conditional update in the same transaction as
the membership insert, and notifications, activity entries and the
invitation email are emitted only after that transaction commits.
"""

import logging
import secrets
from datetime import timedelta

import structlog
from email_validator import EmailNotValidError, validate_email
from flask import current_app

from teamhub import activity, notifications, store
from teamhub.error_utils import ErrorContext, best_effort, safe_operation
from teamhub.exceptions import (
    Conflict,
    Forbidden,
    NotFound,
    TeamHubError,
    ValidationError,
)
from teamhub.mailer import send_team_invitation_email
from teamhub.models import InvitationAction, InvitationStatus, TeamInvitation, utcnow
from teamhub.team_permissions import can_invite, parse_assignable_role

logger = structlog.get_logger(__name__)
_log = logging.getLogger(__name__)

DEFAULT_EXPIRY_DAYS = 7


def normalize_email(value) -> str:
    """
    Validate an email address and return it lower-cased.

    Raises:
        ValidationError: Missing or syntactically invalid address
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Email address is required")
    try:
        result = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email address: {exc}") from exc
    return result.normalized.lower()


def parse_action(value) -> InvitationAction:
    if isinstance(value, InvitationAction):
        return value
    if isinstance(value, str):
        try:
            return InvitationAction(value.strip().lower())
        except ValueError:
            pass
    raise ValidationError("Action must be 'accept' or 'reject'")


def _expiry_days() -> int:
    return int(current_app.config.get("INVITATION_EXPIRY_DAYS", DEFAULT_EXPIRY_DAYS))


def create_invitation(team_id, inviter, invitee_email, role="member", now=None):
    """
    Invite a registered user to a team.

    Args:
        team_id: Team to invite into
        inviter: Acting Principal
        invitee_email: Address of the registered user being invited
        role: Role granted on acceptance ("member" or "admin")
        now: Creation time (defaults to utcnow)

    Returns:
        TeamInvitation: The new pending invitation

    Raises:
        NotFound: Team does not exist
        Forbidden: Inviter is neither owner nor admin
        ValidationError: Bad email or role, or the email is not registered
        Conflict: A live invitation exists, or the invitee is already on the team
    """
    now = now or utcnow()

    team = store.find_team(team_id)
    if team is None:
        raise NotFound("Team not found")

    inviter_membership = store.find_membership(team.id, inviter.id)
    if not can_invite(team, inviter, inviter_membership):
        raise Forbidden("Only team owners and admins can send invitations")

    email = normalize_email(invitee_email)
    invite_role = parse_assignable_role(role)
    if invite_role is None:
        raise ValidationError("Role must be 'member' or 'admin'")

    if store.find_pending_invitation(team.id, email, now) is not None:
        raise Conflict("An invitation is already pending for this email")

    invitee = store.find_user_by_email(email)
    if invitee is not None:
        if invitee.id == team.owner_id or store.find_membership(team.id, invitee.id):
            raise Conflict("User is already a member of this team")
    else:
        raise ValidationError("No registered user with this email address")

    try:
        invitation = store.create_invitation(
            team_id=team.id,
            invited_by_id=inviter.id,
            email=email,
            role=invite_role,
            token=secrets.token_hex(32),
            expires_at=now + timedelta(days=_expiry_days()),
            created_at=now,
        )
        invitation_id, team_id, invitee_id = invitation.id, team.id, invitee.id
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    logger.info(
        "team_invitation_created",
        invitation_id=invitation_id,
        team_id=team_id,
        invited_by=inviter.id,
        role=invite_role.value,
    )

    _send_invitation_email(invitation)
    with best_effort(_log, "invitation notification", invitation_id=invitation_id):
        notifications.notify_invitation_received(invitation, invitee_id)
    with best_effort(_log, "invitation activity", invitation_id=invitation_id):
        activity.log_invitation_sent(invitation, user_id=inviter.id)
    return invitation


def _send_invitation_email(invitation: TeamInvitation) -> None:
    base_url = current_app.config.get("APP_BASE_URL", "").rstrip("/")
    with ErrorContext(
        _log,
        "invitation email",
        raise_on_error=False,
        log_level=logging.WARNING,
        invitation_id=invitation.id,
    ):
        sent = send_team_invitation_email(
            to_address=invitation.email,
            team_name=invitation.team.name,
            inviter_name=invitation.invited_by.display_name,
            role=invitation.role.value,
            invitation_url=f"{base_url}/invitations/token/{invitation.token}",
            expires_at=invitation.expires_at.strftime("%Y-%m-%d %H:%M UTC"),
        )
        logger.info(
            "team_invitation_email", invitation_id=invitation.id, sent=sent
        )


def resolve_invitation(invitation_id, actor, action, now=None):
    """
    Accept or reject an invitation addressed to the actor.

    Args:
        invitation_id: Invitation to resolve
        actor: Acting Principal; must own the invited email
        action: "accept" or "reject"
        now: Evaluation time (defaults to utcnow)

    Returns:
        TeamInvitation: The invitation in its new state

    Raises:
        ValidationError: Unknown action
        NotFound: Invitation does not exist
        Forbidden: Invitation is addressed to someone else
        InvitationExpired: Accept attempted after expiry
        Conflict: Invitation already accepted or rejected
    """
    action = parse_action(action)
    invitation = store.find_invitation(invitation_id)
    if invitation is None:
        raise NotFound("Invitation not found")
    return _resolve(invitation, actor, action, now or utcnow())


def resolve_invitation_by_token(token, actor, action, now=None):
    """Same as resolve_invitation, looking the invitation up by its token."""
    action = parse_action(action)
    invitation = store.find_invitation_by_token(token) if token else None
    if invitation is None:
        raise NotFound("Invitation not found")
    return _resolve(invitation, actor, action, now or utcnow())


def _resolve(invitation, actor, action, now):
    if not actor.owns_email(invitation.email):
        raise Forbidden("This invitation is addressed to another user")

    target_status = invitation.transition(action, now)
    accepting = action == InvitationAction.ACCEPT
    team = invitation.team
    invitation_id, team_id, role = invitation.id, team.id, invitation.role
    membership_created = False

    try:
        claimed = store.claim_invitation(
            invitation,
            TeamInvitation.claimable_statuses(action),
            target_status,
            now,
            require_unexpired=accepting,
        )
        if not claimed:
            # Lost a race; report the state the winner left behind
            store.rollback()
            invitation.transition(action, now)
            raise Conflict("Invitation has already been processed")

        if accepting and team.owner_id != actor.id:
            if store.find_membership(team_id, actor.id) is None:
                store.create_membership(team_id, actor.id, role, joined_at=now)
                membership_created = True
        store.commit()
    except TeamHubError:
        store.rollback()
        raise

    logger.info(
        "team_invitation_resolved",
        invitation_id=invitation_id,
        team_id=team_id,
        user_id=actor.id,
        status=target_status.value,
        membership_created=membership_created,
    )

    with best_effort(
        _log, "invitation resolution notification", invitation_id=invitation_id
    ):
        invitee = store.find_user(actor.id)
        if invitee is not None:
            if accepting:
                notifications.notify_invitation_accepted(invitation, invitee)
            else:
                notifications.notify_invitation_rejected(invitation, invitee)
    with best_effort(
        _log, "invitation resolution activity", invitation_id=invitation_id
    ):
        if not accepting:
            activity.log_invitation_rejected(invitation, user_id=actor.id)
        elif membership_created:
            activity.log_member_joined(
                team, actor.id, role, invitation_id=invitation_id
            )
    return invitation


@safe_operation(_log, "pending invitation count", default_value=0)
def count_pending_invitations(email, now=None) -> int:
    """Number of live invitations addressed to ``email``; 0 on any failure."""
    if not email:
        return 0
    return store.count_invitations(
        email, InvitationStatus.PENDING, now or utcnow()
    )


def list_invitations_for_user(email):
    """Invitations addressed to ``email``, newest first."""
    if not email:
        return []
    return store.list_invitations_for_email(email)


def list_team_invitations(team_id, actor):
    """
    Invitations sent for a team, newest first.

    Raises:
        NotFound: Team does not exist
        Forbidden: Actor cannot invite to this team
    """
    team = store.find_team(team_id)
    if team is None:
        raise NotFound("Team not found")
    if not can_invite(team, actor, store.find_membership(team.id, actor.id)):
        raise Forbidden("Only team owners and admins can view invitations")
    return store.list_team_invitations(team.id)


def expire_stale_invitations(now=None) -> int:
    """Persist the expired status on pending invitations past their expiry."""
    now = now or utcnow()
    expired = store.expire_invitations(now)
    logger.info("team_invitations_expired", count=expired, now=now.isoformat())
    return expired
