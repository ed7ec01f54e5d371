"""Small helper utilities for API modules.

Keep lightweight helpers here so route modules can import useful helpers
without pulling in heavy app state (avoid circular imports).
"""
from flask import request
from flask_login import current_user

from teamhub.exceptions import ValidationError
from teamhub.principal import Principal


def current_principal() -> Principal:
    """The logged-in user as the principal passed to service operations."""
    return Principal.from_user(current_user)


def json_body() -> dict:
    """Parsed JSON object from the request body.

    Raises:
        ValidationError: Body is missing or not a JSON object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def pagination_args(default_limit: int = 20, max_limit: int = 100) -> tuple[int, int]:
    """Read ``limit``/``offset`` query parameters, clamped to sane bounds."""
    try:
        limit = int(request.args.get("limit", default_limit))
        offset = int(request.args.get("offset", 0))
    except ValueError:
        raise ValidationError("limit and offset must be integers")
    return max(1, min(limit, max_limit)), max(0, offset)
