"""
API endpoints for the current user's team invitations.

Invitations are addressed by email; the logged-in user sees and resolves
only those sent to their own address.
"""

from flask import jsonify, request
from flask_login import login_required

from teamhub import invitations
from teamhub.api import api_bp
from teamhub.api._helpers import current_principal, json_body


@api_bp.route("/invitations", methods=["GET"])
@login_required
def list_my_invitations():
    """
    List invitations addressed to the current user, newest first.

    Returns:
        {"invitations": [...], "pending_count": int}
    """
    principal = current_principal()
    items = invitations.list_invitations_for_user(principal.email)
    return jsonify(
        {
            "invitations": [inv.to_dict() for inv in items],
            "pending_count": invitations.count_pending_invitations(principal.email),
        }
    )


@api_bp.route("/invitations/count", methods=["GET"])
@login_required
def pending_invitation_count():
    """
    Count of live invitations for the current user (navigation badge).

    Returns:
        {"count": int}
    """
    return jsonify(
        {"count": invitations.count_pending_invitations(current_principal().email)}
    )


@api_bp.route("/invitations/<int:invitation_id>", methods=["PUT"])
@login_required
def respond_to_invitation(invitation_id):
    """
    Accept or reject an invitation.

    Request body:
        {"action": "accept|reject"}

    Returns:
        JSON object with the updated invitation
    """
    data = json_body()
    invitation = invitations.resolve_invitation(
        invitation_id, current_principal(), data.get("action")
    )
    return jsonify(invitation.to_dict())


@api_bp.route("/invitations/token/<token>", methods=["POST"])
@login_required
def respond_to_invitation_by_token(token):
    """
    Accept or reject an invitation using the link token from the email.

    Request body (optional):
        {"action": "accept|reject"}  (defaults to accept)
    """
    data = json_body() if request.get_data(cache=True) else {}
    invitation = invitations.resolve_invitation_by_token(
        token, current_principal(), data.get("action", "accept")
    )
    return jsonify(invitation.to_dict())
