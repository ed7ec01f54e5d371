#!/usr/bin/env python3
"""
Database initialization script for TeamHub.

This script creates the database tables and optionally adds sample data
for development and testing purposes.
"""
from config.settings import DevelopmentConfig
from teamhub import create_app, invitations, store, teams
from teamhub.exceptions import Conflict
from teamhub.models import db
from teamhub.principal import Principal


def init_db(drop_existing=False):
    """
    Initialize the database with tables.

    Args:
        drop_existing: Whether to drop existing tables first
    """
    app = create_app(DevelopmentConfig)

    with app.app_context():
        if drop_existing:
            print("Dropping existing tables...")
            db.drop_all()

        print("Creating database tables...")
        db.create_all()

        print("Database initialized successfully!")


def _get_or_create_user(username, email, password, full_name=None):
    user = store.find_user_by_username(username)
    if user:
        return user, False
    return store.create_user(username, email, password, full_name=full_name), True


def reset_password(username: str, password: str):
    """Reset a user's password.

    Args:
        username: Account to update.
        password: New password to set.
    """
    app = create_app(DevelopmentConfig)

    with app.app_context():
        user = store.find_user_by_username(username)
        if not user:
            print(f"User '{username}' not found.")
            return
        user.set_password(password)
        store.commit()
        print(f"Password for {username} has been reset.")


def create_sample_data(password: str = "password123"):
    """Create two users, a team owned by the first and an invitation for the second."""
    app = create_app(DevelopmentConfig)

    with app.app_context():
        owner, created = _get_or_create_user(
            "demo_owner", "owner@example.com", password, full_name="Demo Owner"
        )
        if created:
            print(f"User created: demo_owner / {password}")
        invitee, created = _get_or_create_user(
            "demo_member", "member@example.com", password, full_name="Demo Member"
        )
        if created:
            print(f"User created: demo_member / {password}")

        principal = Principal.from_user(owner)
        team = next(
            (t for t in teams.list_teams_for_user(principal) if t.name == "Demo Team"),
            None,
        )
        if team is None:
            team = teams.create_team(
                principal, "Demo Team", description="Sample team for development"
            )
            print("Sample team created!")

        try:
            invitations.create_invitation(team.id, principal, invitee.email)
            print(f"Invitation sent to {invitee.email}")
        except Conflict:
            print(f"{invitee.email} is already invited or a member")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize TeamHub database")
    parser.add_argument(
        "--drop", action="store_true", help="Drop existing tables first"
    )
    parser.add_argument(
        "--reset-password",
        metavar="USERNAME",
        help="Reset password for the given user",
    )
    parser.add_argument(
        "--password",
        type=str,
        help="Password to use with --sample or --reset-password (default: password123)",
    )
    parser.add_argument("--sample", action="store_true", help="Create sample data")
    parser.add_argument("--all", action="store_true", help="Initialize everything")

    args = parser.parse_args()

    if args.all:
        init_db(drop_existing=True)
        create_sample_data(password=args.password or "password123")
    else:
        if args.drop or not any(vars(args).values()):
            init_db(drop_existing=args.drop)

        if args.reset_password:
            reset_password(args.reset_password, args.password or "password123")

        if args.sample:
            create_sample_data(password=args.password or "password123")

    print("\nDatabase setup complete!")
    print("\nTo start the application:")
    print("  python main.py")
    print("\nTo start Celery worker and beat:")
    print("  celery -A teamhub.tasks.celery_app worker --beat --loglevel=info")
