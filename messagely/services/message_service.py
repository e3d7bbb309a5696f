"""Direct message persistence service."""

from datetime import datetime, timezone

import asyncpg
import structlog

from messagely.database import get_pool
from messagely.errors import NotFound
from messagely.models.message import Message, MessageDetail, MessageReadReceipt
from messagely.models.user import UserSummary

logger = structlog.get_logger(__name__)


def _message_from_row(row) -> Message:
    return Message(
        id=row["id"],
        from_username=row["from_username"],
        to_username=row["to_username"],
        body=row["body"],
        sent_at=row["sent_at"],
        read_at=row["read_at"],
    )


def _not_found(message_id: int) -> NotFound:
    return NotFound(f"No such message: {message_id}")


class MessageService:
    """Service for message CRUD operations."""

    async def create(self, from_username: str, to_username: str, body: str) -> Message:
        """Store a new message.

        Args:
            from_username: Sender (the authenticated user)
            to_username: Recipient username
            body: Message text

        Returns:
            Created Message

        Raises:
            NotFound: If the recipient (or sender) is not registered
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    INSERT INTO messages (from_username, to_username, body, sent_at)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id, from_username, to_username, body, sent_at, read_at
                    """,
                    from_username,
                    to_username,
                    body,
                    now,
                )
        except asyncpg.exceptions.ForeignKeyViolationError:
            logger.warning(
                "message_recipient_not_found",
                from_username=from_username,
                to_username=to_username,
            )
            raise NotFound(f"Could not find user with username {to_username}")

        message = _message_from_row(row)
        logger.info(
            "message_created",
            message_id=message.id,
            from_username=from_username,
            to_username=to_username,
        )
        return message

    async def get_parties(self, message_id: int) -> Message:
        """Get the raw message row, including both usernames.

        Raises:
            NotFound: If no message has this id
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id, from_username, to_username, body, sent_at, read_at
                FROM messages
                WHERE id = $1
                """,
                message_id,
            )

        if row is None:
            raise _not_found(message_id)

        return _message_from_row(row)

    async def get(self, message_id: int) -> MessageDetail:
        """Get a message with sender and recipient expanded.

        Raises:
            NotFound: If no message has this id
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT m.id, m.body, m.sent_at, m.read_at,
                       f.username AS from_username,
                       f.first_name AS from_first_name,
                       f.last_name AS from_last_name,
                       f.phone AS from_phone,
                       t.username AS to_username,
                       t.first_name AS to_first_name,
                       t.last_name AS to_last_name,
                       t.phone AS to_phone
                FROM messages AS m
                JOIN users AS f ON m.from_username = f.username
                JOIN users AS t ON m.to_username = t.username
                WHERE m.id = $1
                """,
                message_id,
            )

        if row is None:
            raise _not_found(message_id)

        return MessageDetail(
            id=row["id"],
            body=row["body"],
            sent_at=row["sent_at"],
            read_at=row["read_at"],
            from_user=UserSummary(
                username=row["from_username"],
                first_name=row["from_first_name"],
                last_name=row["from_last_name"],
                phone=row["from_phone"],
            ),
            to_user=UserSummary(
                username=row["to_username"],
                first_name=row["to_first_name"],
                last_name=row["to_last_name"],
                phone=row["to_phone"],
            ),
        )

    async def mark_read(self, message_id: int) -> MessageReadReceipt:
        """Set read_at to now.

        Raises:
            NotFound: If no message has this id
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                UPDATE messages
                SET read_at = $1
                WHERE id = $2
                RETURNING id, read_at
                """,
                now,
                message_id,
            )

        if row is None:
            raise _not_found(message_id)

        logger.info("message_marked_read", message_id=message_id)
        return MessageReadReceipt(id=row["id"], read_at=row["read_at"])
