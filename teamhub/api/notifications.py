"""
API endpoints for user notifications.
"""

from flask import jsonify, request
from flask_login import current_user, login_required

from teamhub.api import api_bp
from teamhub.api._helpers import pagination_args
from teamhub.notifications import (
    get_unread_count,
    get_user_notifications,
    mark_all_as_read,
    mark_as_read,
)


@api_bp.route("/notifications", methods=["GET"])
@login_required
def list_notifications():
    """
    Get notifications for the current user.

    Query parameters:
        limit: Maximum number of notifications (default: 20, max: 100)
        offset: Pagination offset (default: 0)
        unread_only: Only return unread notifications (default: false)
        type: Filter by notification type (optional)
        date_range: today, week, month or 3months (optional)

    Returns:
        {
            "notifications": [
                {
                    "id": int,
                    "type": str,
                    "title": str,
                    "message": str,
                    "link_url": str | null,
                    "data": {...},
                    "is_read": bool,
                    "created_at": str,
                    "read_at": str | null,
                    "team_id": int | null,
                    "actor": {...} | null
                }
            ],
            "unread_count": int,
            "total": int
        }
    """
    limit, offset = pagination_args()
    unread_only = request.args.get("unread_only", "false").lower() == "true"

    notifications, total = get_user_notifications(
        user_id=current_user.id,
        limit=limit,
        offset=offset,
        unread_only=unread_only,
        notification_type=request.args.get("type"),
        date_range=request.args.get("date_range"),
    )

    return jsonify(
        {
            "notifications": [n.to_dict() for n in notifications],
            "unread_count": get_unread_count(current_user.id),
            "total": total,
        }
    )


@api_bp.route("/notifications/unread-count", methods=["GET"])
@login_required
def unread_count():
    """
    Get count of unread notifications for the current user.

    Returns:
        {"count": int}
    """
    return jsonify({"count": get_unread_count(current_user.id)})


@api_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
@login_required
def mark_notification_read(notification_id):
    """
    Mark a notification as read.

    Returns:
        {"message": "Notification marked as read"}
    """
    mark_as_read(notification_id, current_user.id)
    return jsonify({"message": "Notification marked as read"})


@api_bp.route("/notifications/read-all", methods=["POST"])
@login_required
def mark_all_notifications_read():
    """
    Mark all notifications as read for the current user.

    Returns:
        {"message": "All notifications marked as read", "updated": int}
    """
    updated = mark_all_as_read(current_user.id)
    return jsonify({"message": "All notifications marked as read", "updated": updated})
