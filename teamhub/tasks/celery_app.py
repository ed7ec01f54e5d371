"""
Celery application configuration.
"""
# ruff: noqa: I001

import os

from celery import Celery
from celery.signals import after_setup_logger, after_setup_task_logger, task_postrun

from config.settings import Config


def make_celery(app_name=__name__):
    """Create and configure Celery application."""
    config = Config()

    celery_app = Celery(
        app_name,
        broker=config.CELERY_BROKER_URL,
        backend=config.CELERY_RESULT_BACKEND,
        include=[
            "teamhub.tasks.invitation_expiry",
            "teamhub.tasks.notification_cleanup",
        ],
    )

    celery_app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        # Celery 6+ change: explicitly retry broker connections on startup
        broker_connection_retry_on_startup=True,
    )

    # Beat schedule for periodic tasks
    celery_app.conf.beat_schedule = {
        "expire-stale-invitations": {
            "task": "teamhub.tasks.invitation_expiry.expire_stale_invitations_task",
            "schedule": float(config.INVITATION_SWEEP_INTERVAL_SECONDS),
        },
        "cleanup-old-notifications": {
            "task": "teamhub.tasks.notification_cleanup.cleanup_old_notifications_task",
            "schedule": 86400.0,  # Run daily (24 hours in seconds)
            "args": (config.NOTIFICATION_RETENTION_DAYS,),
        },
    }

    return celery_app


# Create Celery app
celery_app = make_celery()


def _instance_path() -> str:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    return os.environ.get("TEAMHUB_INSTANCE_PATH") or os.path.join(
        repo_root, "instance"
    )


# Attach structlog for Celery loggers
@after_setup_logger.connect
def _setup_celery_logger(logger, *args, **kwargs):  # pragma: no cover - logging init
    from teamhub.structured_logging import configure_structlog_celery

    configure_structlog_celery(_instance_path())


@after_setup_task_logger.connect
def _setup_celery_task_logger(
    logger, *args, **kwargs
):  # pragma: no cover - logging init
    from teamhub.structured_logging import configure_structlog_celery

    configure_structlog_celery(_instance_path())


# Ensure SQLAlchemy sessions are cleaned up after each task to avoid leaking
# connections across Celery worker processes.
@task_postrun.connect
def _cleanup_db_session(*args, **kwargs):  # pragma: no cover - simple guard
    from teamhub.models import db

    db.session.remove()
