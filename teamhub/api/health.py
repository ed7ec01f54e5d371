"""Health endpoints for the API blueprint.

Mounts served by this module:

- GET /health
    - Purpose: liveness/health-check used by load balancers and orchestration
      to verify the API process is running and the database is reachable.
    - Parameters: none
"""

import structlog
from flask import jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from teamhub.api import api_bp
from teamhub.models import db

logger = structlog.get_logger(__name__)


@api_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint.

    Returns a JSON payload with a short status message. No auth required.
    Responds 503 when the database cannot be queried.
    """
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("health_check_database_unavailable", error=str(exc))
        return jsonify({"status": "degraded", "database": "unavailable"}), 503
    return jsonify({"status": "healthy", "database": "ok"})
