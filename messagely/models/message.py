"""Direct message models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from messagely.models.user import UserSummary


class Message(BaseModel):
    """A stored message row."""

    id: int
    from_username: str
    to_username: str
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class MessageDetail(BaseModel):
    """A message with both parties expanded."""

    id: int
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None
    from_user: UserSummary
    to_user: UserSummary


class SentMessage(BaseModel):
    """Entry in a user's outbox."""

    id: int
    to_user: UserSummary
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class ReceivedMessage(BaseModel):
    """Entry in a user's inbox."""

    id: int
    from_user: UserSummary
    body: str
    sent_at: datetime
    read_at: Optional[datetime] = None


class MessageReadReceipt(BaseModel):
    id: int
    read_at: datetime


class CreateMessageRequest(BaseModel):
    """New message from the authenticated user.

    Attributes:
        to_username: Recipient username
        body: Message text
        token: Session token, accepted in the body as ``_token``
    """

    model_config = ConfigDict(populate_by_name=True)

    to_username: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    token: Optional[str] = Field(default=None, alias="_token")
