"""Credential store: user rows and per-user message listings."""

from datetime import datetime, timezone
from typing import Optional

import asyncpg
import structlog

from messagely.database import get_pool
from messagely.errors import DuplicateUsername, NotFound, NoUsers, UpdateFailed
from messagely.models.message import ReceivedMessage, SentMessage
from messagely.models.user import UserProfile, UserSummary

logger = structlog.get_logger(__name__)


def _profile_from_row(row) -> UserProfile:
    return UserProfile(
        username=row["username"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        join_at=row["join_at"],
        last_login_at=row["last_login_at"],
    )


def _summary_from_row(row) -> UserSummary:
    return UserSummary(
        username=row["username"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
    )


class UserService:
    """Service for user persistence.

    Password hashes go in through ``insert`` and come out only through
    ``get_password_hash``; every other read returns hash-free models.
    """

    async def exists(self, username: str) -> bool:
        """Check whether a username is already registered.

        Advisory only: the primary key on ``users.username`` is what
        actually guarantees uniqueness under concurrent registrations.
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                "SELECT username FROM users WHERE username = $1",
                username,
            )

        return found is not None

    async def insert(
        self,
        username: str,
        password_hash: str,
        first_name: str,
        last_name: str,
        phone: str,
    ) -> Optional[UserProfile]:
        """Insert a new user row.

        Args:
            username: Unique username
            password_hash: Already-hashed password
            first_name: Given name
            last_name: Family name
            phone: Contact phone number

        Returns:
            Created UserProfile, or None if the insert returned no row

        Raises:
            DuplicateUsername: If the username's unique constraint fires
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO users (username, password, first_name, last_name, phone, join_at)
                    VALUES ($1, $2, $3, $4, $5, $6)
                    RETURNING username, first_name, last_name, phone, join_at, last_login_at
                    """,
                    username,
                    password_hash,
                    first_name,
                    last_name,
                    phone,
                    now,
                )
        except asyncpg.exceptions.UniqueViolationError:
            logger.warning("user_insert_duplicate", username=username)
            raise DuplicateUsername(username)

        if row is None:
            return None

        logger.info("user_inserted", username=username)
        return _profile_from_row(row)

    async def get_password_hash(self, username: str) -> Optional[str]:
        """Get the stored password hash for a username, or None if absent."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT password FROM users WHERE username = $1",
                username,
            )

    async def touch_last_login(self, username: str) -> None:
        """Set last_login_at to now.

        Raises:
            UpdateFailed: If no row matched the username
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE users
                SET last_login_at = $1
                WHERE username = $2
                """,
                now,
                username,
            )

        if result != "UPDATE 1":
            raise UpdateFailed(username)

    async def get(self, username: str) -> UserProfile:
        """Get a user's profile.

        Raises:
            NotFound: If the username is not registered
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT username, first_name, last_name, phone, join_at, last_login_at
                FROM users
                WHERE username = $1
                """,
                username,
            )

        if row is None:
            raise NotFound(f"Could not find user with username {username}")

        return _profile_from_row(row)

    async def list_all(self) -> list[UserSummary]:
        """Return basic info on all users.

        Raises:
            NoUsers: If no users are registered. An empty table is an error
                here, not an empty list; existing clients rely on it.
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT username, first_name, last_name, phone
                FROM users
                ORDER BY username ASC
                """
            )

        if not rows:
            raise NoUsers()

        return [_summary_from_row(row) for row in rows]

    async def messages_from(self, username: str) -> list[SentMessage]:
        """Return messages sent by a user, each with the recipient expanded.

        Raises:
            NotFound: If the user has sent nothing
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT m.id, m.body, m.sent_at, m.read_at,
                       u.username, u.first_name, u.last_name, u.phone
                FROM messages AS m
                JOIN users AS u ON m.to_username = u.username
                WHERE m.from_username = $1
                ORDER BY m.sent_at ASC, m.id ASC
                """,
                username,
            )

        if not rows:
            raise NotFound(f"Could not fetch messages from username {username}")

        return [
            SentMessage(
                id=row["id"],
                to_user=_summary_from_row(row),
                body=row["body"],
                sent_at=row["sent_at"],
                read_at=row["read_at"],
            )
            for row in rows
        ]

    async def messages_to(self, username: str) -> list[ReceivedMessage]:
        """Return messages received by a user, each with the sender expanded.

        Raises:
            NotFound: If the user has received nothing
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT m.id, m.body, m.sent_at, m.read_at,
                       u.username, u.first_name, u.last_name, u.phone
                FROM messages AS m
                JOIN users AS u ON m.from_username = u.username
                WHERE m.to_username = $1
                ORDER BY m.sent_at ASC, m.id ASC
                """,
                username,
            )

        if not rows:
            raise NotFound(f"Could not fetch messages received by username {username}")

        return [
            ReceivedMessage(
                id=row["id"],
                from_user=_summary_from_row(row),
                body=row["body"],
                sent_at=row["sent_at"],
                read_at=row["read_at"],
            )
            for row in rows
        ]
