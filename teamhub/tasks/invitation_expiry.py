"""
Celery task that persists the expired status on overdue invitations.

Expiry is already enforced when an invitation is read or resolved; the
sweep only keeps stored statuses and pending counts tidy.
"""
import structlog
from celery import shared_task

from teamhub import create_app
from teamhub.exceptions import PersistenceError
from teamhub.invitations import expire_stale_invitations

logger = structlog.get_logger(__name__)


@shared_task(bind=True)
def expire_stale_invitations_task(self):
    """
    Mark pending invitations past their expiry as expired.

    Returns:
        dict: {"expired": int}
    """
    app = create_app()
    with app.app_context():
        try:
            expired = expire_stale_invitations()
        except PersistenceError as e:
            logger.error("invitation_expiry_failed", error=str(e), exc_info=True)
            return {"error": str(e), "expired": 0}
        return {"expired": expired}
