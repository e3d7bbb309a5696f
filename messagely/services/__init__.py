"""Services package exports."""

from messagely.services.access_guard import AccessGuard
from messagely.services.auth_service import AuthService
from messagely.services.logging_service import configure_logging, get_logger
from messagely.services.message_service import MessageService
from messagely.services.user_service import UserService

__all__ = [
    "AccessGuard",
    "AuthService",
    "MessageService",
    "UserService",
    "configure_logging",
    "get_logger",
]
