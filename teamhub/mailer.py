"""
Simple SMTP mailer utility.

Reads configuration from Flask app config.
Password is sourced only from environment (.env) via SMTP_PASSWORD for security.
"""
from __future__ import annotations

import smtplib
from email.message import EmailMessage

from flask import current_app


def _get(key: str, default=None):
    return current_app.config.get(key, default)


def is_configured() -> bool:
    host = _get("SMTP_HOST")
    port = int(_get("SMTP_PORT", 0) or 0)
    user = _get("SMTP_USERNAME")
    pw = _get("SMTP_PASSWORD")
    return bool(host and port and user and pw)


def send_email(
    to_address: str,
    subject: str,
    html: str | None = None,
    text: str | None = None,
    from_address: str | None = None,
) -> bool:
    """Send an email using configured SMTP settings.

    Returns True on success, False when SMTP is not configured. Transport
    errors propagate to the caller.
    """
    if not is_configured():
        current_app.logger.warning("SMTP not fully configured; email skipped.")
        return False

    host = _get("SMTP_HOST")
    port = int(_get("SMTP_PORT"))
    use_tls = bool(_get("SMTP_USE_TLS", True))
    use_ssl = bool(_get("SMTP_USE_SSL", False))
    user = _get("SMTP_USERNAME")
    pw = _get("SMTP_PASSWORD")  # Only via environment/.env
    from_addr = from_address or _get("EMAIL_FROM_ADDRESS") or "no-reply@example.com"

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_address
    body_text = (
        text
        or (html and "This email contains HTML content; please view in an HTML client.")
        or ""
    )
    msg.set_content(body_text)
    if html:
        msg.add_alternative(html, subtype="html")

    if use_ssl:
        with smtplib.SMTP_SSL(host, port, timeout=10) as smtp:
            smtp.login(user, pw)
            smtp.send_message(msg)
    else:
        with smtplib.SMTP(host, port, timeout=10) as smtp:
            if use_tls:
                smtp.starttls()
            smtp.login(user, pw)
            smtp.send_message(msg)
    return True


def send_team_invitation_email(
    to_address: str,
    team_name: str,
    inviter_name: str,
    role: str,
    invitation_url: str,
    expires_at: str,
) -> bool:
    """Send a team invitation email.

    Args:
        to_address: Recipient email
        team_name: Name of the team
        inviter_name: Display name of person sending invitation
        role: Role being offered (member, admin)
        invitation_url: Full URL to accept invitation
        expires_at: Expiration date/time string

    Returns:
        True on success, False if SMTP is not configured
    """
    subject = f"You've been invited to join {team_name}"

    role_description = {
        "member": "collaborate with the rest of the team",
        "admin": "manage team members and invitations",
    }.get(role.lower(), "collaborate")

    html = f"""
    <h2>Team Invitation</h2>
    <p>Hi there!</p>
    <p><strong>{inviter_name}</strong> has invited you to join the team <strong>{team_name}</strong> as a <strong>{role}</strong>.</p>
    <p>As a {role}, you'll be able to {role_description}.</p>
    <p style="margin: 20px 0;">
        <a href="{invitation_url}" style="background-color: #0d6efd; color: white; padding: 10px 20px; text-decoration: none; border-radius: 5px; display: inline-block;">
            Accept Invitation
        </a>
    </p>
    <p style="color: #666; font-size: 0.9em;">
        This invitation expires on {expires_at}.<br>
        If you don't want to join this team, you can safely ignore this email.
    </p>
    """

    text = f"""
You've been invited to join {team_name}

{inviter_name} has invited you to join the team "{team_name}" as a {role}.

As a {role}, you'll be able to {role_description}.

To accept this invitation, open this link:
{invitation_url}

This invitation expires on {expires_at}.

If you don't want to join this team, you can safely ignore this email.
    """

    return send_email(to_address, subject, html=html, text=text)
