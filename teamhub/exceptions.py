"""
Error taxonomy for the team membership core.

Service modules raise these; the API blueprint turns them into JSON error
responses using ``status_code`` and ``code``.
"""


class TeamHubError(Exception):
    """Base exception for team, membership and invitation operations."""

    status_code = 500
    code = "error"
    default_message = "The request could not be completed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class NotFound(TeamHubError):
    """Team, invitation or member does not exist."""

    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Forbidden(TeamHubError):
    """The acting principal lacks permission."""

    status_code = 403
    code = "forbidden"
    default_message = "Permission denied"


class Conflict(TeamHubError):
    """Duplicate invitation, existing member or already processed invitation."""

    status_code = 409
    code = "conflict"
    default_message = "The resource is in a conflicting state"


class InvitationExpired(TeamHubError):
    """Accept attempted on an invitation past its expiry."""

    status_code = 410
    code = "invitation_expired"
    default_message = "Invitation has expired"


class ValidationError(TeamHubError):
    """Malformed input or an invitee that is not a registered user."""

    status_code = 400
    code = "validation_error"
    default_message = "Invalid input"


class InvalidOperation(TeamHubError):
    """Attempt to change the role of, or remove, the team owner."""

    status_code = 400
    code = "invalid_operation"
    default_message = "Operation not allowed on the team owner"


class PersistenceError(TeamHubError):
    """Wrapped database failure."""

    status_code = 503
    code = "persistence_error"
    default_message = "The data store is unavailable. Please try again later."
