# ridehub/core/messages/repository.py
"""
Trip chat message repository.
"""

from __future__ import annotations

from ridehub.common.exceptions import PersistenceError
from ridehub.common.logger import log_error
from ridehub.infra.database import DatabaseManager
from ridehub.shared.models.enums import MessageType
from ridehub.shared.models.message_dto import MessageDTO


class MessageRepository:
    """Chat messages stored in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def create(
        self,
        trip_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> MessageDTO:
        """
        Persists a chat message.

        Returns:
            The stored message with its id and server timestamp
        """
        try:
            row = await self._db.fetchrow(
                """
                INSERT INTO messages (trip_id, sender_id, content, type)
                VALUES ($1, $2, $3, $4)
                RETURNING id, trip_id, sender_id, content, type, created_at
                """,
                trip_id,
                sender_id,
                content,
                message_type.value,
            )
        except Exception as e:
            await log_error(f"Failed to store message in trip {trip_id}: {e}")
            raise PersistenceError("Failed to save message") from e

        return MessageDTO(
            id=str(row["id"]),
            trip_id=row["trip_id"],
            sender_id=row["sender_id"],
            content=row["content"],
            type=MessageType(row["type"]),
            created_at=row["created_at"],
        )
