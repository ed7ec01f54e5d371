"""
JSON API blueprint.

Route modules import ``api_bp`` and register their endpoints on it; the
application factory imports them and registers the blueprint under /api.
"""
from flask import Blueprint

api_bp = Blueprint("api", __name__)
