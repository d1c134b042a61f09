# ridehub/core/notifications/repository.py
"""
Notification repository.
Durable store behind best-effort real-time delivery.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

import asyncpg

from ridehub.common.constants import TypeMsg
from ridehub.common.exceptions import PersistenceError
from ridehub.common.logger import log_error, log_info
from ridehub.infra.database import DatabaseManager
from ridehub.shared.models.message_dto import CreateNotification, NotificationDTO

_INSERT = """
    INSERT INTO notifications (recipient_id, sender_id, type, title, message, data, priority)
    VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
    RETURNING id, recipient_id, sender_id, type, title, message, data,
              priority, status, read_at, created_at
"""


class NotificationRepository:
    """Notifications stored in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    @staticmethod
    def _args(dto: CreateNotification) -> tuple:
        return (
            dto.recipient_id,
            dto.sender_id,
            dto.type.value,
            dto.title,
            dto.message,
            json.dumps(dto.data, default=str),
            dto.priority.value,
        )

    @staticmethod
    def _to_dto(row) -> NotificationDTO:
        data = row["data"]
        if isinstance(data, str):
            data = json.loads(data)
        return NotificationDTO(
            id=str(row["id"]),
            recipient_id=row["recipient_id"],
            sender_id=row["sender_id"],
            type=row["type"],
            title=row["title"],
            message=row["message"],
            data=data or {},
            priority=row["priority"],
            status=row["status"],
            read_at=row["read_at"],
            created_at=row["created_at"],
        )

    async def create(self, dto: CreateNotification) -> NotificationDTO:
        """Persists one notification."""
        try:
            row = await self._db.fetchrow(_INSERT, *self._args(dto))
        except Exception as e:
            await log_error(f"Failed to store notification for {dto.recipient_id}: {e}")
            raise PersistenceError("Failed to save notification") from e

        return self._to_dto(row)

    async def create_many(self, dtos: list[CreateNotification]) -> int:
        """Persists a batch in one transaction. Returns the number stored."""
        if not dtos:
            return 0
        try:
            async with self._db.transaction() as conn:
                await conn.executemany(
                    """
                    INSERT INTO notifications (recipient_id, sender_id, type, title, message, data, priority)
                    VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
                    """,
                    [self._args(dto) for dto in dtos],
                )
        except Exception as e:
            await log_error(f"Failed to store {len(dtos)} notifications: {e}")
            raise PersistenceError("Failed to save notifications") from e

        await log_info(f"Stored {len(dtos)} notifications", type_msg=TypeMsg.DEBUG)
        return len(dtos)

    async def mark_read(self, notification_id: str) -> bool:
        """
        Marks a notification read.

        Returns:
            False when no such notification exists
        """
        try:
            result = await self._db.execute(
                "UPDATE notifications SET status = 'read', read_at = $2 WHERE id = $1::uuid",
                notification_id,
                datetime.now(timezone.utc),
            )
        except asyncpg.DataError:
            # Not a UUID, so it cannot exist
            return False
        except Exception as e:
            await log_error(f"Failed to mark notification {notification_id} read: {e}")
            raise PersistenceError("Failed to update notification") from e

        return result.endswith(" 1")
