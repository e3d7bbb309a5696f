"""User profile and mailbox endpoints."""

from fastapi import APIRouter, Depends

from messagely.api.dependencies import ensure_correct_user, get_current_username
from messagely.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def list_users(
    current_username: str = Depends(get_current_username),
) -> dict:
    """List basic info on all users.

    Returns:
        {"users": [{username, first_name, last_name, phone}, ...]}
    """
    users = await UserService().list_all()
    return {"users": [u.model_dump() for u in users]}


@router.get("/{username}")
async def get_user(
    username: str,
    current_username: str = Depends(ensure_correct_user),
) -> dict:
    """Get the requester's own profile.

    Returns:
        {"user": {username, first_name, last_name, phone, join_at, last_login_at}}
    """
    user = await UserService().get(username)
    return {"user": user.model_dump(mode="json")}


@router.get("/{username}/to")
async def get_messages_to(
    username: str,
    current_username: str = Depends(ensure_correct_user),
) -> dict:
    """List messages the requester received.

    Returns:
        {"messages": [{id, from_user, body, sent_at, read_at}, ...]}
    """
    messages = await UserService().messages_to(username)
    return {"messages": [m.model_dump(mode="json") for m in messages]}


@router.get("/{username}/from")
async def get_messages_from(
    username: str,
    current_username: str = Depends(ensure_correct_user),
) -> dict:
    """List messages the requester sent.

    Returns:
        {"messages": [{id, to_user, body, sent_at, read_at}, ...]}
    """
    messages = await UserService().messages_from(username)
    return {"messages": [m.model_dump(mode="json") for m in messages]}
