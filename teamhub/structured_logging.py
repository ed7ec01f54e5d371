"""
Structured logging configuration using structlog.

This module provides:
- Structured JSON output (app.json, error.json, worker.json) for easy parsing
- Context-aware logging (request IDs, user IDs, task IDs)
- Redaction of secrets such as invitation tokens and passwords
- Human-readable console output
- Integration with Flask and Celery

Usage in Flask:
    from teamhub.structured_logging import configure_structlog
    configure_structlog(app, role="web")

Usage in Celery:
    from teamhub.structured_logging import configure_structlog_celery
    configure_structlog_celery(instance_path)

Usage in code:
    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("team_invitation_created", invitation_id=12, team_id=3)
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog
from pythonjsonlogger.json import JsonFormatter

# Module-level guard to avoid duplicate configuration
_STRUCTLOG_CONFIGURED = False

SENSITIVE_KEYS = {
    "password",
    "secret",
    "token",
    "authorization",
    "cookie",
    "csrf_token",
}


def get_log_dir(instance_path: str, override: str | None = None) -> str:
    """Resolve the directory where log files will be stored.

    Order of preference:
    1) explicit override argument
    2) LOG_DIR env var
    3) <instance_path>/logs
    """
    base = override or os.environ.get("LOG_DIR")
    if not base:
        base = os.path.join(instance_path, "logs")
    Path(base).mkdir(parents=True, exist_ok=True)
    return base


def _add_request_context(logger, method_name, event_dict):
    """Add Flask request context to log events."""
    from flask import g, has_request_context, request

    if has_request_context():
        event_dict["endpoint"] = request.endpoint
        event_dict["method"] = request.method
        event_dict["path"] = request.path

        if getattr(g, "request_id", None):
            event_dict["request_id"] = g.request_id

        from flask_login import current_user

        if current_user and current_user.is_authenticated:
            event_dict.setdefault("user_id", current_user.id)
    return event_dict


def _add_celery_context(logger, method_name, event_dict):
    """Add Celery task context to log events."""
    from celery import current_task

    if current_task and current_task.request and current_task.request.id:
        task_req = current_task.request
        event_dict["task_id"] = task_req.id
        event_dict["task_name"] = task_req.task
        event_dict["task_retries"] = getattr(task_req, "retries", 0)
    return event_dict


def _filter_health_checks(logger, method_name, event_dict):
    """Drop INFO-level noise from load balancer health probes."""
    if method_name in ("debug", "info"):
        if event_dict.get("path", "").startswith("/api/health"):
            raise structlog.DropEvent
    return event_dict


def _censor_sensitive_data(logger, method_name, event_dict):
    """Remove or redact sensitive data from logs."""
    for key in list(event_dict.keys()):
        if any(sens in key.lower() for sens in SENSITIVE_KEYS):
            event_dict[key] = "***REDACTED***"
    return event_dict


def _build_json_handler(path: str, level: int) -> RotatingFileHandler:
    """Build a rotating file handler with JSON formatting."""
    # 50 MB per file, keep 10 backups
    handler = RotatingFileHandler(path, maxBytes=50 * 1024 * 1024, backupCount=10)
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def _build_console_handler(level: int) -> logging.StreamHandler:
    """Build a console handler with human-readable formatting."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    return handler


def get_log_level(app_config: dict | None = None) -> int:
    """Determine log level from config or environment."""
    # Priority: app config > env var > default
    if app_config and "LOG_LEVEL" in app_config:
        level_name = str(app_config["LOG_LEVEL"])
    else:
        level_name = os.environ.get("LOG_LEVEL", "INFO")

    return getattr(logging, level_name.upper(), logging.INFO)


def configure_component_loggers(base_level: int) -> None:
    """Configure log levels for specific components.

    - Werkzeug: only warnings (suppress request logs)
    - SQLAlchemy: only warnings (suppress query logs unless DEBUG)
    - Celery: info level
    """
    logging.getLogger("werkzeug").setLevel(
        logging.DEBUG if base_level <= logging.DEBUG else logging.WARNING
    )
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if base_level <= logging.DEBUG else logging.WARNING
    )
    logging.getLogger("celery").setLevel(min(base_level, logging.INFO))


def _install_handlers(primary_log_path: str, error_log_path: str, level: int) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    # JSON handlers for parsing/analysis; errors also get their own file
    root.addHandler(_build_json_handler(primary_log_path, level))
    root.addHandler(_build_json_handler(error_log_path, logging.WARNING))
    root.addHandler(_build_console_handler(level))

    configure_component_loggers(level)


def _configure_processors(processors: list, level: int) -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            *processors,
            _censor_sensitive_data,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_structlog(app, role: str = "web") -> dict:
    """Configure structlog for Flask application.

    Args:
        app: Flask app instance (must have .instance_path and .config)
        role: "web" or "worker" for context identification

    Returns:
        dict with keys: log_dir, app_log, error_log
    """
    global _STRUCTLOG_CONFIGURED

    # Never configure file logging in tests
    if app.config.get("TESTING"):
        if not _STRUCTLOG_CONFIGURED:
            structlog.configure(
                processors=[
                    structlog.processors.add_log_level,
                    structlog.processors.TimeStamper(fmt="iso"),
                    _censor_sensitive_data,
                    structlog.dev.ConsoleRenderer(colors=False),
                ],
                wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
                context_class=dict,
                logger_factory=structlog.PrintLoggerFactory(),
                cache_logger_on_first_use=True,
            )
            _STRUCTLOG_CONFIGURED = True
        return {"log_dir": "", "app_log": "", "error_log": ""}

    log_dir = get_log_dir(app.instance_path, app.config.get("LOG_DIR"))
    app_log_path = os.path.join(log_dir, "app.json")
    error_log_path = os.path.join(log_dir, "error.json")
    level = get_log_level(app.config)

    if not _STRUCTLOG_CONFIGURED:
        _install_handlers(app_log_path, error_log_path, level)
        _configure_processors(
            [_add_request_context, _add_celery_context, _filter_health_checks],
            level,
        )
        _STRUCTLOG_CONFIGURED = True

    # Won't show unless LOG_LEVEL=DEBUG
    structlog.get_logger(__name__).debug(
        "logging_configured",
        role=role,
        log_dir=log_dir,
        level=logging.getLevelName(level),
    )

    return {"log_dir": log_dir, "app_log": app_log_path, "error_log": error_log_path}


def configure_structlog_celery(instance_path: str) -> None:
    """Configure structlog for Celery workers.

    Args:
        instance_path: Path to instance directory for log files
    """
    global _STRUCTLOG_CONFIGURED

    if _STRUCTLOG_CONFIGURED:
        return

    log_dir = get_log_dir(instance_path)
    level = get_log_level()

    _install_handlers(
        os.path.join(log_dir, "worker.json"),
        os.path.join(log_dir, "error.json"),
        level,
    )
    _configure_processors([_add_celery_context], level)
    _STRUCTLOG_CONFIGURED = True

    structlog.get_logger(__name__).debug(
        "celery_logging_configured", log_dir=log_dir, level=logging.getLevelName(level)
    )
