"""Authentication service: registration, credential checks and session tokens."""

import asyncio
import time
from functools import lru_cache
from typing import Optional

import bcrypt
import jwt
import structlog

from messagely.config import Settings, get_settings
from messagely.errors import DuplicateUsername, RegistrationFailed, Unauthenticated, UpdateFailed
from messagely.models.user import UserProfile
from messagely.services.user_service import UserService

logger = structlog.get_logger(__name__)

# Constants
JWT_ALGORITHM = "HS256"

# Last-login updates run after the response is sent
_pending_logins: set[asyncio.Task] = set()


@lru_cache
def _dummy_hash(work_factor: int) -> str:
    """Hash compared against when the username is unknown."""
    return bcrypt.hashpw(b"messagely-dummy-password", bcrypt.gensalt(rounds=work_factor)).decode("utf-8")


async def await_pending_logins(timeout: float = 5.0) -> None:
    """Wait for scheduled last-login updates to finish.

    Called during application shutdown.

    Args:
        timeout: Maximum seconds to wait for pending tasks
    """
    if not _pending_logins:
        return

    logger.info("draining_pending_logins", count=len(_pending_logins))
    try:
        await asyncio.wait_for(
            asyncio.gather(*_pending_logins, return_exceptions=True),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning(
            "pending_logins_timeout",
            remaining=len(_pending_logins),
            timeout=timeout,
        )


class AuthService:
    """Service for credential lifecycle and token minting.

    Configuration and the credential store are injected so the service can
    be exercised without process-wide state; both default to the
    application's own.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        users: Optional[UserService] = None,
    ):
        self.settings = settings or get_settings()
        self.users = users or UserService()

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt at the configured work factor.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_work_factor)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise (including when
            the stored hash is malformed)
        """
        try:
            return bcrypt.checkpw(
                password.encode("utf-8"),
                password_hash.encode("utf-8"),
            )
        except ValueError as e:
            logger.error("password_hash_unusable", error=str(e))
            return False

    async def register(
        self,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str,
    ) -> UserProfile:
        """Register a new user.

        Args:
            username: Requested username
            password: Plain-text password (will be hashed)
            first_name: Given name
            last_name: Family name
            phone: Contact phone number

        Returns:
            Created UserProfile (never includes the hash)

        Raises:
            DuplicateUsername: If the username is taken, whether caught by
                the pre-check or by the store's unique constraint
            RegistrationFailed: If the store returned no row
        """
        if await self.users.exists(username):
            raise DuplicateUsername(username)

        password_hash = await asyncio.to_thread(self.hash_password, password)
        user = await self.users.insert(
            username=username,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            phone=phone,
        )

        if user is None:
            logger.error("user_registration_no_row", username=username)
            raise RegistrationFailed()

        logger.info("user_registered", username=username)
        return user

    async def authenticate(self, username: str, password: str) -> bool:
        """Check a username/password pair.

        Unknown users and wrong passwords both return False, and both pay
        for one bcrypt comparison. bcrypt runs in a worker thread so the
        event loop keeps serving other requests.

        Args:
            username: Claimed username
            password: Plain-text password

        Returns:
            True only if the user exists and the password matches
        """
        password_hash = await self.users.get_password_hash(username)

        if password_hash is None:
            dummy = await asyncio.to_thread(_dummy_hash, self.settings.bcrypt_work_factor)
            await asyncio.to_thread(self.verify_password, password, dummy)
            return False

        return await asyncio.to_thread(self.verify_password, password, password_hash)

    async def update_login_timestamp(self, username: str) -> None:
        """Record a successful login.

        Raises:
            UpdateFailed: If the user row vanished since authentication
        """
        await self.users.touch_last_login(username)

    async def _update_login_logged(self, username: str) -> None:
        try:
            await self.update_login_timestamp(username)
        except UpdateFailed as e:
            logger.warning("last_login_update_failed", username=username, error=e.message)
        except Exception as e:
            logger.error("last_login_update_failed", username=username, error=str(e))

    def record_login(self, username: str) -> asyncio.Task:
        """Schedule the last-login update without waiting for it.

        Failures are logged, never raised to the caller.

        Returns:
            The created asyncio Task
        """
        task = asyncio.create_task(self._update_login_logged(username))
        _pending_logins.add(task)
        task.add_done_callback(_pending_logins.discard)
        return task

    def issue_token(self, username: str) -> str:
        """Create a signed session token.

        The payload is exactly ``{"username", "iat"}``; an ``exp`` claim is
        added only when ``token_ttl_seconds`` is configured.

        Args:
            username: Identity the token asserts

        Returns:
            Encoded JWT string
        """
        now = int(time.time())
        payload = {"username": username, "iat": now}
        if self.settings.token_ttl_seconds:
            payload["exp"] = now + self.settings.token_ttl_seconds

        encoded = jwt.encode(payload, self.settings.secret_key, algorithm=JWT_ALGORITHM)
        logger.debug("session_issued", username=username)
        return encoded

    def decode_token(self, token: str) -> dict:
        """Decode and validate a session token.

        Args:
            token: Encoded JWT string

        Returns:
            Decoded payload with at least username and iat

        Raises:
            Unauthenticated: If the token is malformed, tampered with,
                expired, or carries no username
        """
        try:
            payload = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("session_rejected", reason="expired")
            raise Unauthenticated("Token has expired")
        except jwt.InvalidTokenError as e:
            logger.info("session_rejected", reason=str(e))
            raise Unauthenticated()

        username = payload.get("username")
        if not isinstance(username, str) or not username:
            logger.info("session_rejected", reason="missing username claim")
            raise Unauthenticated()

        return payload
