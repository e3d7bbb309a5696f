"""Direct message endpoints."""

from fastapi import APIRouter, Depends

from messagely.api.dependencies import (
    get_current_username,
    get_message_for_participant,
    get_message_for_recipient,
)
from messagely.models.message import CreateMessageRequest, Message
from messagely.services.message_service import MessageService

router = APIRouter(prefix="/messages", tags=["Messages"])


@router.get("/{message_id}")
async def get_message(
    message: Message = Depends(get_message_for_participant),
) -> dict:
    """Get a message the requester sent or received.

    Returns:
        {"message": {id, body, sent_at, read_at, from_user, to_user}}
    """
    detail = await MessageService().get(message.id)
    return {"message": detail.model_dump(mode="json")}


@router.post("")
async def create_message(
    request: CreateMessageRequest,
    current_username: str = Depends(get_current_username),
) -> dict:
    """Send a message from the requester.

    The sender is always the token's identity; the body cannot choose it.

    Returns:
        {"message": {id, from_username, to_username, body, sent_at, read_at}}
    """
    message = await MessageService().create(
        from_username=current_username,
        to_username=request.to_username,
        body=request.body,
    )
    return {"message": message.model_dump(mode="json")}


@router.post("/{message_id}")
@router.post("/{message_id}/read")
async def mark_message_read(
    message: Message = Depends(get_message_for_recipient),
) -> dict:
    """Mark a message as read. Only its recipient may do this.

    Returns:
        {"message": {id, read_at}}
    """
    receipt = await MessageService().mark_read(message.id)
    return {"message": receipt.model_dump(mode="json")}
