"""
Flask application factory and configuration.

This module contains the Flask application factory that initializes
and configures all extensions, blueprints, and application settings.
"""
import logging
import os
import uuid

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_talisman import Talisman
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException

from config.settings import Config, DevelopmentConfig, ProductionConfig, TestingConfig

# Make CSRFProtect available app-wide so routes can optionally exempt endpoints
csrf = CSRFProtect()
migrate = Migrate()
login_manager = LoginManager()

_log = logging.getLogger(__name__)

CONFIG_BY_ENV = {
    "production": ProductionConfig,
    "testing": TestingConfig,
    "development": DevelopmentConfig,
}


def create_app(config_class=None):
    """
    Create and configure Flask application.

    This factory function creates a Flask application instance and configures
    all necessary extensions, blueprints, and security measures.

    Args:
        config_class: Configuration class to use. If None, will be determined
                     from FLASK_ENV environment variable.

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # Determine configuration class if not provided
    if config_class is None:
        env = os.environ.get("FLASK_ENV", "development")
        config_class = CONFIG_BY_ENV.get(env, DevelopmentConfig)

    app.config.from_object(config_class)

    # Configure structured logging early (minimal console setup during tests)
    from teamhub.structured_logging import configure_structlog

    configure_structlog(app, role="web")

    # Enforce PostgreSQL outside tests: SQLite is reserved for tests only
    db_uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not app.config.get("TESTING") and db_uri.startswith("sqlite:"):
        raise RuntimeError(
            "SQLite is only supported in TESTING. Set DATABASE_URL/DEV_DATABASE_URL to PostgreSQL."
        )

    # Initialize extensions
    init_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup security headers (only in production or if explicitly enabled)
    if app.config.get("FORCE_HTTPS") or not app.debug:
        Talisman(
            app,
            force_https=app.config.get("FORCE_HTTPS", False),
            strict_transport_security=app.config.get("STRICT_TRANSPORT_SECURITY", True),
            content_security_policy=app.config.get("CONTENT_SECURITY_POLICY"),
        )

    return app


def init_extensions(app):
    """
    Initialize Flask extensions.

    Args:
        app: Flask application instance
    """
    from teamhub.models import User, db

    db.init_app(app)
    migrate.init_app(app, db)

    # CORS for API access from a separately served frontend
    CORS(app, origins=app.config.get("CORS_ORIGINS", Config.CORS_ORIGINS))

    # CSRF Protection
    csrf.init_app(app)

    # Ensure any aborted transactions are cleared at the start of a request
    @app.before_request
    def _ensure_clean_db_session():
        db.session.rollback()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex

    # On request errors, ensure the transaction is rolled back
    @app.teardown_request
    def _teardown_request(exc):
        if exc is not None:
            db.session.rollback()

    # Rate limiting (can be disabled via RATELIMIT_ENABLED=False)
    if app.config.get("RATELIMIT_ENABLED", True):
        limiter = Limiter(
            key_func=get_remote_address,
            default_limits=[app.config.get("RATELIMIT_DEFAULT", "100 per hour")],
            storage_uri=app.config.get("RATELIMIT_STORAGE_URL"),
        )
        limiter.init_app(app)

    # User session management
    login_manager.init_app(app)
    login_manager.login_view = "auth.login"

    @login_manager.user_loader
    def load_user(user_id):
        """Load user by ID for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({"error": "Authentication required", "code": "unauthorized"}), 401


def register_blueprints(flask_app):
    """
    Register Flask blueprints.

    Args:
        flask_app: Flask application instance
    """
    # All API endpoints are registered on the shared api_bp blueprint.
    # Import modules to register their routes, then register the blueprint once
    from teamhub.api import api_bp

    import teamhub.api.health  # noqa: F401 - registers routes on api_bp
    import teamhub.api.invitations  # noqa: F401 - registers routes on api_bp
    import teamhub.api.notifications  # noqa: F401 - registers routes on api_bp
    import teamhub.api.teams  # noqa: F401 - registers routes on api_bp

    flask_app.register_blueprint(api_bp, url_prefix="/api")

    # Authentication routes
    from teamhub.auth.routes import auth_bp

    flask_app.register_blueprint(auth_bp, url_prefix="/auth")


def register_error_handlers(app):
    """
    Register JSON error handlers.

    Application errors carry their own status and code; plain HTTP errors
    and unexpected exceptions are rendered in the same {"error", "code"} shape.

    Args:
        app: Flask application instance
    """
    from teamhub.error_utils import handle_api_exception
    from teamhub.exceptions import TeamHubError

    @app.errorhandler(TeamHubError)
    def handle_teamhub_error(error):
        """Map the error taxonomy onto HTTP status codes."""
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        code = (error.name or "error").lower().replace(" ", "_")
        return jsonify({"error": error.description, "code": code}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        body, status = handle_api_exception(
            _log,
            "Unhandled exception during request",
            status_code=500,
            path=request.path,
            method=request.method,
        )
        return jsonify(body), status
