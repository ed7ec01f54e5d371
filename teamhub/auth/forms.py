"""
Authentication forms for user registration and login.

The JSON API posts these as JSON bodies; Flask-WTF reads form fields from
either form-encoded or JSON requests.
"""
from flask_wtf import FlaskForm
from wtforms import BooleanField, PasswordField, StringField
from wtforms.validators import (
    DataRequired,
    Email,
    EqualTo,
    Length,
    Optional,
    ValidationError,
)

from teamhub import store


class LoginForm(FlaskForm):
    """
    Form for user login.

    Allows users to authenticate using either username or email
    along with their password.
    """

    username_or_email = StringField(
        "Username or Email",
        validators=[DataRequired(), Length(min=3, max=255)],
    )
    password = PasswordField("Password", validators=[DataRequired()])
    remember_me = BooleanField("Remember Me")


class RegistrationForm(FlaskForm):
    """
    Form for user registration.

    Collects user information for creating a new account including
    validation for unique usernames and emails.
    """

    username = StringField(
        "Username",
        validators=[DataRequired(), Length(min=3, max=80)],
    )
    email = StringField(
        "Email",
        validators=[DataRequired(), Email(check_deliverability=False), Length(max=255)],
    )
    full_name = StringField("Full Name", validators=[Optional(), Length(max=200)])
    password = PasswordField(
        "Password",
        validators=[DataRequired(), Length(min=8)],
    )
    password_confirm = PasswordField(
        "Confirm Password",
        validators=[
            DataRequired(),
            EqualTo("password", message="Passwords must match"),
        ],
    )

    def validate_username(self, username):
        """
        Validate that username is unique.

        Raises:
            ValidationError: If username already exists
        """
        if store.find_user_by_username(username.data):
            raise ValidationError(
                "Username already exists. Please choose a different one."
            )

    def validate_email(self, email):
        """
        Validate that email is unique (case-insensitive).

        Raises:
            ValidationError: If email already exists
        """
        if store.find_user_by_email(email.data):
            raise ValidationError(
                "Email already registered. Please use a different email."
            )
