# tests/core/test_collaborator_repositories.py
"""
Tests for the user, message and notification repositories.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import asyncpg
import pytest

from ridehub.common.exceptions import PersistenceError
from ridehub.core.messages.repository import MessageRepository
from ridehub.core.notifications.repository import NotificationRepository
from ridehub.core.users.repository import UserRepository
from ridehub.shared.models.enums import MessageType, NotificationType
from ridehub.shared.models.message_dto import CreateNotification

NOW = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class TestUserRepository:
    """UserRepository."""

    @pytest.mark.asyncio
    async def test_get_snapshot(self, mock_db) -> None:
        mock_db.fetchrow.return_value = {"id": "rider-1", "name": "Ravi", "avatar": None}

        user = await UserRepository(mock_db).get_snapshot("rider-1")

        assert user.name == "Ravi"
        assert user.to_event_user() == {"_id": "rider-1", "name": "Ravi", "avatar": None}

    @pytest.mark.asyncio
    async def test_get_snapshot_missing(self, mock_db) -> None:
        assert await UserRepository(mock_db).get_snapshot("ghost") is None

    @pytest.mark.asyncio
    async def test_touch_last_seen(self, mock_db) -> None:
        await UserRepository(mock_db).touch_last_seen("rider-1", NOW)

        assert mock_db.execute.call_args.args[1:] == ("rider-1", NOW)

    @pytest.mark.asyncio
    async def test_touch_last_seen_failure(self, mock_db) -> None:
        mock_db.execute.side_effect = Exception("gone")

        with patch("ridehub.core.users.repository.log_error", new_callable=AsyncMock):
            with pytest.raises(PersistenceError):
                await UserRepository(mock_db).touch_last_seen("rider-1")


class TestMessageRepository:
    """MessageRepository."""

    @pytest.mark.asyncio
    async def test_create(self, mock_db) -> None:
        message_id = uuid.uuid4()
        mock_db.fetchrow.return_value = {
            "id": message_id,
            "trip_id": "trip-1",
            "sender_id": "rider-1",
            "content": "On my way",
            "type": "text",
            "created_at": NOW,
        }

        message = await MessageRepository(mock_db).create("trip-1", "rider-1", "On my way")

        assert message.id == str(message_id)
        assert message.type == MessageType.TEXT
        assert mock_db.fetchrow.call_args.args[1:] == ("trip-1", "rider-1", "On my way", "text")

    @pytest.mark.asyncio
    async def test_create_failure(self, mock_db) -> None:
        mock_db.fetchrow.side_effect = Exception("fk violation")

        with patch("ridehub.core.messages.repository.log_error", new_callable=AsyncMock):
            with pytest.raises(PersistenceError):
                await MessageRepository(mock_db).create("trip-1", "rider-1", "hi", MessageType.LOCATION)


class TestNotificationRepository:
    """NotificationRepository."""

    @pytest.fixture
    def dto(self) -> CreateNotification:
        return CreateNotification(
            recipient_id="rider-1",
            sender_id="org-1",
            type=NotificationType.TRIP_STARTED,
            title="Trip Started",
            message='Trip "Sunrise loop" has started!',
            data={"relatedEntity": {"type": "trip", "id": "trip-1"}},
        )

    @pytest.mark.asyncio
    async def test_create(self, mock_db, dto) -> None:
        notification_id = uuid.uuid4()
        mock_db.fetchrow.return_value = {
            "id": notification_id,
            "recipient_id": "rider-1",
            "sender_id": "org-1",
            "type": "trip_started",
            "title": "Trip Started",
            "message": dto.message,
            "data": json.dumps(dto.data),
            "priority": "medium",
            "status": "unread",
            "read_at": None,
            "created_at": NOW,
        }

        stored = await NotificationRepository(mock_db).create(dto)

        assert stored.id == str(notification_id)
        assert stored.type == NotificationType.TRIP_STARTED
        assert stored.data == dto.data
        args = mock_db.fetchrow.call_args.args
        assert args[3] == "trip_started"
        assert json.loads(args[6]) == dto.data

    @pytest.mark.asyncio
    async def test_create_many_uses_one_transaction(self, mock_db, dto) -> None:
        conn = MagicMock()
        conn.executemany = AsyncMock()
        cm = MagicMock()
        cm.__aenter__ = AsyncMock(return_value=conn)
        cm.__aexit__ = AsyncMock(return_value=False)
        mock_db.transaction.return_value = cm

        count = await NotificationRepository(mock_db).create_many([dto, dto.model_copy(update={"recipient_id": "rider-3"})])

        assert count == 2
        rows = conn.executemany.call_args.args[1]
        assert [r[0] for r in rows] == ["rider-1", "rider-3"]

    @pytest.mark.asyncio
    async def test_create_many_empty(self, mock_db) -> None:
        assert await NotificationRepository(mock_db).create_many([]) == 0
        mock_db.transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_mark_read(self, mock_db) -> None:
        assert await NotificationRepository(mock_db).mark_read(str(uuid.uuid4())) is True

    @pytest.mark.asyncio
    async def test_mark_read_missing(self, mock_db) -> None:
        mock_db.execute.return_value = "UPDATE 0"
        assert await NotificationRepository(mock_db).mark_read(str(uuid.uuid4())) is False

    @pytest.mark.asyncio
    async def test_mark_read_malformed_id(self, mock_db) -> None:
        mock_db.execute.side_effect = asyncpg.InvalidTextRepresentationError("invalid input syntax for type uuid")
        assert await NotificationRepository(mock_db).mark_read("not-a-uuid") is False
