"""Models package exports."""

from messagely.models.auth import LoginRequest, RegisterRequest, TokenResponse
from messagely.models.message import (
    CreateMessageRequest,
    Message,
    MessageDetail,
    MessageReadReceipt,
    ReceivedMessage,
    SentMessage,
)
from messagely.models.user import UserProfile, UserSummary

__all__ = [
    "CreateMessageRequest",
    "LoginRequest",
    "Message",
    "MessageDetail",
    "MessageReadReceipt",
    "ReceivedMessage",
    "RegisterRequest",
    "SentMessage",
    "TokenResponse",
    "UserProfile",
    "UserSummary",
]
