"""
Authentication routes for user login, registration and logout.

These exist to establish the Flask-Login session whose user becomes the
acting principal for the team and invitation API. All responses are JSON.
"""
from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from teamhub import store
from teamhub.auth.forms import LoginForm, RegistrationForm
from teamhub.models import utcnow

# Create authentication blueprint
auth_bp = Blueprint("auth", __name__)


def _user_payload(user):
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "full_name": user.full_name,
    }


def _form_errors(form):
    return (
        jsonify(
            {
                "error": "Please correct the highlighted errors and try again.",
                "code": "validation_error",
                "fields": form.errors,
            }
        ),
        400,
    )


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    """Issue a CSRF token for clients to send back in the X-CSRFToken header."""
    return jsonify({"csrf_token": generate_csrf()})


@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate by username or email and start a session.

    Request body:
        {"username_or_email": str, "password": str, "remember_me": bool}

    Returns:
        200 with the user on success, 401 for bad credentials, 403 for a
        deactivated account, 400 for malformed input.
    """
    form = LoginForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    identifier = form.username_or_email.data.strip()
    user = store.find_user_by_username(identifier) or store.find_user_by_email(
        identifier
    )

    if not user or not user.check_password(form.password.data):
        current_app.logger.info("Failed login attempt for %s", identifier)
        return (
            jsonify(
                {"error": "Invalid username/email or password.", "code": "unauthorized"}
            ),
            401,
        )

    if not user.is_active:
        return (
            jsonify(
                {
                    "error": "Your account has been deactivated. Please contact support.",
                    "code": "forbidden",
                }
            ),
            403,
        )

    login_user(user, remember=form.remember_me.data)
    store.record_login(user, utcnow())
    current_app.logger.info("User login successful: %s", user.username)

    return jsonify({"user": _user_payload(user)})


@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create a new user account.

    Request body:
        {"username", "email", "password", "password_confirm", "full_name"?}

    Returns:
        201 with the created user, 400 with field errors, 409 if the username
        or email was taken concurrently
    """
    form = RegistrationForm()
    if not form.validate_on_submit():
        return _form_errors(form)

    user = store.create_user(
        username=form.username.data.strip(),
        email=form.email.data.strip(),
        password=form.password.data,
        full_name=(form.full_name.data or "").strip() or None,
    )
    current_app.logger.info("New user registered: %s", user.username)
    return jsonify({"user": _user_payload(user)}), 201


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """End the current session."""
    username = current_user.username
    logout_user()
    current_app.logger.info("User logged out: %s", username)
    return jsonify({"message": f"You have been logged out, {username}."})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    """Return the logged-in user."""
    return jsonify({"user": _user_payload(current_user)})
