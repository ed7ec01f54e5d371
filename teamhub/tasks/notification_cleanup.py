"""
Celery task for cleaning up old read notifications.
Runs as a scheduled task via Celery Beat.
"""
import structlog
from celery import shared_task

from teamhub import create_app
from teamhub.exceptions import PersistenceError
from teamhub.notifications import cleanup_read_notifications

logger = structlog.get_logger(__name__)


@shared_task(bind=True)
def cleanup_old_notifications_task(self, retention_days: int = 30):
    """
    Delete read notifications older than the retention period.

    Unread notifications are never deleted to ensure users don't miss
    important information.

    Args:
        retention_days: Number of days to retain read notifications (default: 30)

    Returns:
        dict: Cleanup statistics
    """
    app = create_app()
    with app.app_context():
        logger.info("notification_cleanup_started", retention_days=retention_days)
        try:
            deleted = cleanup_read_notifications(retention_days)
        except PersistenceError as e:
            logger.error("notification_cleanup_failed", error=str(e), exc_info=True)
            return {"error": str(e), "deleted": 0}

        return {
            "deleted": deleted,
            "message": f"Deleted {deleted} read notification(s) older than {retention_days} days",
        }
