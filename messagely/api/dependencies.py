"""FastAPI dependencies for authentication and authorization."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from messagely.models.message import Message
from messagely.services.access_guard import AccessGuard
from messagely.services.message_service import MessageService

bearer_scheme = HTTPBearer(auto_error=False)


def get_access_guard() -> AccessGuard:
    """Build the guard for this request from application settings."""
    return AccessGuard()


async def extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = None,
) -> Optional[str]:
    """Find the session token presented with a request.

    Looked up in order: ``Authorization: Bearer`` header, ``_token`` in a
    JSON object body, ``_token`` query parameter.

    Args:
        request: Incoming request
        credentials: Parsed Authorization header, if any

    Returns:
        The raw token string, or None if none was presented
    """
    if credentials is not None and credentials.credentials:
        return credentials.credentials

    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("_token"), str):
            return body["_token"]

    return request.query_params.get("_token")


async def get_current_username(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    guard: AccessGuard = Depends(get_access_guard),
) -> str:
    """Extract and validate the requester's identity.

    Returns:
        Username asserted by a valid token

    Raises:
        Unauthenticated: If the token is missing or invalid
    """
    token = await extract_token(request, credentials)
    return guard.identify(token)


async def ensure_correct_user(
    username: str,
    current_username: str = Depends(get_current_username),
    guard: AccessGuard = Depends(get_access_guard),
) -> str:
    """Require the requester to be the user named in the path.

    Raises:
        Forbidden: If the token belongs to someone else
    """
    guard.ensure_self(current_username, username)
    return current_username


async def get_message_for_participant(
    message_id: int,
    current_username: str = Depends(get_current_username),
    guard: AccessGuard = Depends(get_access_guard),
) -> Message:
    """Load a message the requester sent or received.

    The message is loaded before ownership is checked, so an unknown id is
    NotFound for every authenticated caller.

    Raises:
        NotFound: If no message has this id
        Forbidden: If the requester is neither sender nor recipient
    """
    message = await MessageService().get_parties(message_id)
    guard.ensure_participant(current_username, message)
    return message


async def get_message_for_recipient(
    message_id: int,
    current_username: str = Depends(get_current_username),
    guard: AccessGuard = Depends(get_access_guard),
) -> Message:
    """Load a message addressed to the requester.

    Raises:
        NotFound: If no message has this id
        Forbidden: If the requester is not the recipient
    """
    message = await MessageService().get_parties(message_id)
    guard.ensure_recipient(current_username, message)
    return message
