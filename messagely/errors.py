"""Domain errors translated to JSON responses at the HTTP boundary.

Every error carries an HTTP status and a client-safe message. Route handlers
and services raise these; ``messagely.main`` serializes them as
``{"error": {"message": ..., "status": ...}}``.
"""

from http import HTTPStatus
from typing import Any, Optional


class MessagelyError(Exception):
    """Base class for all errors surfaced to API clients.

    Attributes:
        status: HTTP status the boundary translator responds with
        message: Client-visible description
    """

    status: HTTPStatus = HTTPStatus.BAD_REQUEST
    default_message: str = "Bad request"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": {"message": self.message, "status": int(self.status)}}


class ValidationError(MessagelyError):
    """A required field is missing or malformed."""

    default_message = "Invalid request"


class DuplicateUsername(MessagelyError):
    """The username is already registered."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username {username} is taken.")


class AuthenticationFailed(MessagelyError):
    """Login failed. Deliberately silent on whether the user exists."""

    default_message = "Invalid credentials."


class RegistrationFailed(MessagelyError):
    default_message = "Could not register user."


class UpdateFailed(MessagelyError):
    """The last-login update matched no row."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Could not update last login for user {username}")


class NoUsers(MessagelyError):
    default_message = "Could not fetch users"


class NotFound(MessagelyError):
    status = HTTPStatus.NOT_FOUND
    default_message = "Not found"


class Unauthenticated(MessagelyError):
    """Token missing, malformed, expired, or signed with another key."""

    status = HTTPStatus.UNAUTHORIZED
    default_message = "Unauthorized"


class Forbidden(MessagelyError):
    """Token is valid but belongs to the wrong user."""

    status = HTTPStatus.FORBIDDEN
    default_message = "Forbidden"


class StoreUnavailable(MessagelyError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Store unavailable"


class InternalError(MessagelyError):
    """An unexpected failure with no more specific translation."""

    status = HTTPStatus.INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
