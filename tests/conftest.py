import tempfile

import pytest

from config.settings import TestingConfig
from teamhub import create_app, store, teams
from teamhub.models import TeamRole, db
from teamhub.principal import Principal

DEFAULT_PASSWORD = "password123"


@pytest.fixture()
def app():
    # Use a temp instance folder and in-memory sqlite DB for tests
    flask_app = create_app(TestingConfig)
    flask_app.instance_path = tempfile.mkdtemp()
    with flask_app.app_context():
        db.create_all()
    yield flask_app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def ctx(app):
    """Push an application context for service-level tests."""
    with app.app_context():
        yield
        db.session.rollback()


class Factory:
    """Builds users, teams and memberships through the persistence gateway."""

    def user(self, username, email=None, full_name=None, password=DEFAULT_PASSWORD):
        return store.create_user(
            username=username,
            email=email or f"{username}@example.com",
            password=password,
            full_name=full_name,
        )

    def principal(self, user):
        return Principal.from_user(user)

    def team(self, owner, name="Core Team"):
        return teams.create_team(self.principal(owner), name)

    def member(self, team, user, role=TeamRole.MEMBER):
        membership = store.create_membership(team.id, user.id, role)
        store.commit()
        return membership


@pytest.fixture()
def factory(ctx):
    return Factory()


@pytest.fixture()
def auth(app):
    """Register users over HTTP and hand out a logged-in test client per user."""

    class AuthActions:
        def register(self, client, username, email=None, password=DEFAULT_PASSWORD):
            return client.post(
                "/auth/register",
                json={
                    "username": username,
                    "email": email or f"{username}@example.com",
                    "password": password,
                    "password_confirm": password,
                },
            )

        def login(self, client, username, password=DEFAULT_PASSWORD):
            return client.post(
                "/auth/login",
                json={"username_or_email": username, "password": password},
            )

        def client_for(self, username, email=None):
            """A test client whose session belongs to a freshly registered user."""
            user_client = app.test_client()
            response = self.register(user_client, username, email=email)
            assert response.status_code == 201, response.get_json()
            response = self.login(user_client, username)
            assert response.status_code == 200, response.get_json()
            user_client.user_id = response.get_json()["user"]["id"]
            return user_client

    return AuthActions()
