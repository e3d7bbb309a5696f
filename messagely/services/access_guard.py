"""Per-request identity and authorization checks."""

from typing import Optional

import structlog

from messagely.errors import Forbidden, Unauthenticated
from messagely.models.message import Message
from messagely.services.auth_service import AuthService

logger = structlog.get_logger(__name__)


class AccessGuard:
    """Turns a presented token into an identity and gates access by it.

    Holds no state between requests. Message checks take an already-loaded
    message: callers must load it first so a missing message surfaces as
    NotFound before any ownership decision is made.
    """

    def __init__(self, auth_service: Optional[AuthService] = None):
        self.auth_service = auth_service or AuthService()

    def identify(self, token: Optional[str]) -> str:
        """Return the username a token asserts.

        Raises:
            Unauthenticated: If no token was presented or it fails validation
        """
        if not token:
            raise Unauthenticated()

        payload = self.auth_service.decode_token(token)
        return payload["username"]

    def ensure_self(self, current_username: str, username: str) -> None:
        """Self-only: the requester must be the user being acted on."""
        if current_username != username:
            logger.warning(
                "access_denied",
                rule="self",
                current_username=current_username,
                target_username=username,
            )
            raise Forbidden()

    def ensure_participant(self, current_username: str, message: Message) -> None:
        """Participant-only: the requester must have sent or received the message."""
        if current_username not in (message.from_username, message.to_username):
            logger.warning(
                "access_denied",
                rule="participant",
                current_username=current_username,
                message_id=message.id,
            )
            raise Forbidden()

    def ensure_recipient(self, current_username: str, message: Message) -> None:
        """Recipient-only: the requester must be the message's recipient."""
        if current_username != message.to_username:
            logger.warning(
                "access_denied",
                rule="recipient",
                current_username=current_username,
                message_id=message.id,
            )
            raise Forbidden()
