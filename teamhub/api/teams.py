"""
API endpoints for team management.

This module provides REST API endpoints for creating and deleting teams,
joining teams, and managing team memberships. Business rules live in
``teamhub.teams``; handlers translate JSON in and out.
"""

from flask import jsonify, request
from flask_login import login_required

from teamhub import activity, invitations, teams
from teamhub.api import api_bp
from teamhub.api._helpers import current_principal, json_body, pagination_args
from teamhub.models import TeamRole


def _team_payload(team, role, member_count=None):
    payload = team.to_dict()
    payload["role"] = role.value if role else None
    payload["is_owner"] = role == TeamRole.OWNER
    if member_count is not None:
        payload["member_count"] = member_count
    return payload


@api_bp.route("/teams", methods=["GET"])
@login_required
def list_teams():
    """
    List all teams the current user owns or is a member of.

    Returns:
        JSON object with teams array
    """
    principal = current_principal()
    payload = []
    for team in teams.list_teams_for_user(principal):
        if team.owner_id == principal.id:
            role = TeamRole.OWNER
        else:
            membership = team.memberships.filter_by(user_id=principal.id).first()
            role = membership.role if membership else None
        # +1 for owner
        payload.append(_team_payload(team, role, team.memberships.count() + 1))
    return jsonify({"teams": payload})


@api_bp.route("/teams", methods=["POST"])
@login_required
def create_team():
    """
    Create a new team.

    Request body:
        {
            "name": "Team Name",
            "description": "Optional description"
        }

    Returns:
        JSON object with created team details
    """
    data = json_body()
    team = teams.create_team(
        current_principal(), data.get("name"), data.get("description")
    )
    return jsonify(_team_payload(team, TeamRole.OWNER, member_count=1)), 201


@api_bp.route("/teams/<int:team_id>", methods=["GET"])
@login_required
def get_team(team_id):
    """
    Get team details including the member list.

    Returns:
        JSON object with team details, the caller's role and members
    """
    principal = current_principal()
    team, members = teams.list_members(team_id, principal)
    _, role = teams.get_team(team_id, principal)
    payload = _team_payload(team, role, member_count=len(members) + 1)
    payload["owner"] = {
        "id": team.owner.id,
        "username": team.owner.username,
        "full_name": team.owner.full_name,
    }
    payload["members"] = [m.to_dict() for m in members]
    return jsonify(payload)


@api_bp.route("/teams/<int:team_id>", methods=["DELETE"])
@login_required
def delete_team(team_id):
    """Delete a team (owner only)."""
    teams.delete_team(team_id, current_principal())
    return jsonify({"success": True, "message": "Team deleted"})


@api_bp.route("/teams/<int:team_id>/members", methods=["GET"])
@login_required
def list_team_members(team_id):
    """List the members of a team; the owner is reported separately."""
    team, members = teams.list_members(team_id, current_principal())
    return jsonify(
        {
            "owner_id": team.owner_id,
            "members": [m.to_dict() for m in members],
        }
    )


@api_bp.route("/teams/<int:team_id>/join", methods=["POST"])
@login_required
def join_team(team_id):
    """Join a team as a member."""
    membership = teams.join_team(team_id, current_principal())
    return jsonify(membership.to_dict()), 201


@api_bp.route("/teams/<int:team_id>/members/<int:user_id>/role", methods=["PATCH"])
@login_required
def update_team_member_role(team_id, user_id):
    """
    Change a member's role.

    Request body:
        {"role": "member|admin"}
    """
    data = json_body()
    membership = teams.change_role(
        team_id, current_principal(), user_id, data.get("role")
    )
    return jsonify(membership.to_dict())


@api_bp.route("/teams/<int:team_id>/members/<int:user_id>", methods=["DELETE"])
@login_required
def remove_team_member(team_id, user_id):
    """Remove a member; members may remove themselves to leave the team."""
    teams.remove_member(team_id, current_principal(), user_id)
    return jsonify({"success": True})


@api_bp.route("/teams/<int:team_id>/activity", methods=["GET"])
@login_required
def get_team_activity(team_id):
    """
    Get activity feed for a team.

    Query params:
        limit: Max items to return (default 50, max 100)
        offset: Skip N items for pagination (default 0)
    """
    teams.get_team(team_id, current_principal())
    limit, offset = pagination_args(default_limit=50)
    entries = activity.get_team_activities(team_id, limit=limit, offset=offset)
    return jsonify(
        {
            "activities": [entry.to_dict() for entry in entries],
            "pagination": {"limit": limit, "offset": offset},
        }
    )


@api_bp.route("/teams/<int:team_id>/invitations", methods=["POST"])
@login_required
def create_team_invitation(team_id):
    """
    Create and send a team invitation.

    Request body:
        {
            "email": "user@example.com",
            "role": "member|admin"
        }

    Returns:
        JSON object with invitation details
    """
    data = json_body()
    invitation = invitations.create_invitation(
        team_id,
        current_principal(),
        data.get("email"),
        role=data.get("role", TeamRole.MEMBER.value),
    )
    return jsonify(invitation.to_dict()), 201


@api_bp.route("/teams/<int:team_id>/invitations", methods=["GET"])
@login_required
def list_team_invitations(team_id):
    """List all invitations for a team (owner and admins)."""
    status = request.args.get("status")
    items = [
        inv.to_dict()
        for inv in invitations.list_team_invitations(team_id, current_principal())
    ]
    if status:
        items = [item for item in items if item["status"] == status]
    return jsonify({"invitations": items})
