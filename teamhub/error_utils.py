"""
Error handling utilities for consistent logging and error management.

This module provides reusable utilities for handling errors throughout the application,
with structured logging, context preservation, and graceful degradation patterns.
Best-effort side effects (notifications, activity entries, invitation emails)
use these helpers so their failures are recorded without reaching the caller.
"""

import logging
import sys
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g, has_request_context


def safe_log_error(
    logger: logging.Logger,
    message: str,
    exc_info: bool | BaseException | tuple | None = True,
    level: int = logging.ERROR,
    **extra_context: Any,
) -> None:
    """
    Log an error with structured context and exception information.

    This function ensures consistent error logging across the application with
    structured context that can be easily parsed by log aggregation systems.

    Args:
        logger: The logger instance to use
        message: Human-readable error message
        exc_info: Exception info (True for current exception, exception object, or tuple)
        level: Log level (default: ERROR)
        **extra_context: Additional context fields to include in the log

    Example:
        try:
            send_team_invitation_email(...)
        except OSError as e:
            safe_log_error(
                logger,
                "Failed to send invitation email",
                exc_info=e,
                invitation_id=invitation.id,
            )
    """
    # Build structured context
    context = {"error_context": extra_context, "has_exception": bool(exc_info)}

    # Add exception details if available
    if exc_info:
        if isinstance(exc_info, BaseException):
            context["exception_type"] = type(exc_info).__name__
            context["exception_message"] = str(exc_info)
        elif isinstance(exc_info, tuple) and exc_info[0] is not None:
            context["exception_type"] = exc_info[0].__name__
            context["exception_message"] = str(exc_info[1])
        elif exc_info is True:
            exc_type, exc_value, _ = sys.exc_info()
            if exc_type:
                context["exception_type"] = exc_type.__name__
                context["exception_message"] = str(exc_value)

    # Log with structured context
    logger.log(level, message, exc_info=exc_info, extra=context)


def handle_api_exception(
    logger: logging.Logger,
    message: str,
    status_code: int = 500,
    public_message: str | None = None,
    **extra_context: Any,
) -> tuple[dict[str, Any], int]:
    """
    Handle an exception in an API endpoint with logging and JSON response.

    This function logs the error with full context and returns a JSON response
    suitable for API clients. The public message is sanitized to avoid leaking
    sensitive information.

    Args:
        logger: The logger instance to use
        message: Internal error message for logs
        status_code: HTTP status code to return
        public_message: User-facing error message (defaults to generic message)
        **extra_context: Additional context for logging

    Returns:
        Tuple of (JSON response dict, status code)
    """
    # Log the error with full context
    safe_log_error(logger, message, exc_info=True, **extra_context)

    # Determine public message
    if public_message is None:
        if status_code >= 500:
            public_message = "An internal error occurred. Please try again later."
        else:
            public_message = "The request could not be completed."

    response = {"error": public_message, "code": "internal_error"}

    # Add request ID if available (for tracking)
    if has_request_context() and getattr(g, "request_id", None):
        response["request_id"] = g.request_id

    return response, status_code


def safe_operation(
    logger: logging.Logger,
    operation_name: str,
    default_value: Any = None,
    raise_on_error: bool = False,
    log_level: int = logging.ERROR,
) -> Callable:
    """
    Decorator for safely executing operations with automatic error handling.

    This decorator wraps a function to catch exceptions, log them with context,
    and optionally return a default value or re-raise the exception.

    Args:
        logger: Logger instance for error logging
        operation_name: Descriptive name of the operation for logs
        default_value: Value to return on error (if not re-raising)
        raise_on_error: Whether to re-raise exceptions after logging
        log_level: Logging level for errors

    Returns:
        Decorated function with error handling

    Example:
        @safe_operation(logger, "pending invitation count", default_value=0)
        def count_pending_invitations(email):
            return store.count_invitations(email, InvitationStatus.PENDING, utcnow())
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                # Build context from function arguments
                context = {
                    "operation": operation_name,
                    "function": func.__name__,
                    "args_count": len(args),
                    "kwargs_keys": list(kwargs.keys()),
                }

                safe_log_error(
                    logger,
                    f"Error in {operation_name}",
                    exc_info=e,
                    level=log_level,
                    **context,
                )

                if raise_on_error:
                    raise
                return default_value

        return wrapper

    return decorator


class ErrorContext:
    """
    Context manager for operations that need structured error logging.

    This provides a clean way to wrap code blocks with automatic error handling
    and logging, similar to try/except but with consistent structured logging.

    Example:
        with ErrorContext(logger, "invitation email", raise_on_error=False,
                          invitation_id=invitation.id):
            send_team_invitation_email(...)
    """

    def __init__(
        self,
        logger: logging.Logger,
        operation_name: str,
        raise_on_error: bool = True,
        log_level: int = logging.ERROR,
        **context: Any,
    ):
        """
        Initialize error context.

        Args:
            logger: Logger instance
            operation_name: Name of the operation for logs
            raise_on_error: Whether to re-raise exceptions
            log_level: Logging level for errors
            **context: Additional context fields
        """
        self.logger = logger
        self.operation_name = operation_name
        self.raise_on_error = raise_on_error
        self.log_level = log_level
        self.context = context
        self.exception: BaseException | None = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type: type[BaseException], exc_val: BaseException, exc_tb):
        if exc_type is not None and issubclass(exc_type, Exception):
            self.exception = exc_val
            safe_log_error(
                self.logger,
                f"Error in {self.operation_name}",
                exc_info=(exc_type, exc_val, exc_tb),
                level=self.log_level,
                **self.context,
            )
            return not self.raise_on_error  # Suppress exception if not raising
        return False


def best_effort(
    logger: logging.Logger, operation_name: str, **context: Any
) -> ErrorContext:
    """
    ErrorContext for work that runs after a transaction has committed.

    Failures are logged at WARNING and suppressed, so the caller still gets
    the committed result.
    """
    return ErrorContext(
        logger,
        operation_name,
        raise_on_error=False,
        log_level=logging.WARNING,
        **context,
    )
