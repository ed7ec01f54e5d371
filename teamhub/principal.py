"""
Acting principal passed to every team and invitation operation.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Authenticated user identity: an id and a (lower-cased) email."""

    id: int
    email: str

    def __post_init__(self):
        object.__setattr__(self, "email", (self.email or "").strip().lower())

    @classmethod
    def from_user(cls, user) -> Principal:
        """Build a principal from a User row or Flask-Login's current_user."""
        return cls(id=user.id, email=user.email)

    def owns_email(self, email: str | None) -> bool:
        return bool(email) and email.strip().lower() == self.email
