# tests/conftest.py
"""
Shared fixtures and in-memory collaborators for the test suite.
"""

from __future__ import annotations

import json
import os
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Environment must be set before ridehub.config is imported
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-ridehub-tests")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from ridehub.common.exceptions import ConflictError
from ridehub.services.realtime_ws.connection_manager import Connection, ConnectionRegistry
from ridehub.services.realtime_ws.handlers import RealtimeEventHandlers
from ridehub.services.realtime_ws.rooms import RoomBroadcaster
from ridehub.services.tracking_service.service import TrackingService
from ridehub.shared.models.enums import MessageType, ParticipantStatus, TrackingStatus, TripStatus
from ridehub.shared.models.message_dto import CreateNotification, MessageDTO, NotificationDTO
from ridehub.shared.models.tracking_dto import TrackingSession
from ridehub.shared.models.trip_dto import TripDTO, TripLocation, TripParticipant
from ridehub.shared.models.user_dto import UserSnapshot


TRIP_ID = "trip-1"
ORGANIZER_ID = "org-1"
RIDER_ID = "rider-1"
PENDING_RIDER_ID = "rider-2"
SECOND_RIDER_ID = "rider-3"
OUTSIDER_ID = "outsider-9"


# =============================================================================
# CLOCK
# =============================================================================

class FakeClock:
    """Deterministic clock; call it to read, advance() to move forward."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# =============================================================================
# IN-MEMORY REPOSITORIES
# =============================================================================

class InMemoryTrackingSessionRepository:
    """Stores copies, so callers never share objects with the store."""

    def __init__(self) -> None:
        self.sessions: dict[str, TrackingSession] = {}

    async def create(self, session: TrackingSession) -> TrackingSession:
        if await self.find_open(session.trip_id, session.rider_id) is not None:
            raise ConflictError("Active tracking session already exists")
        self.sessions[session.session_id] = session.model_copy(deep=True)
        return session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[TrackingSession]:
        stored = self.sessions.get(session_id)
        return stored.model_copy(deep=True) if stored else None

    async def find_open(self, trip_id: str, rider_id: str) -> Optional[TrackingSession]:
        for s in self.sessions.values():
            if s.trip_id == trip_id and s.rider_id == rider_id and not s.status.is_terminal:
                return s.model_copy(deep=True)
        return None

    async def list_open_for_trip(self, trip_id: str) -> list[TrackingSession]:
        return [
            s.model_copy(deep=True)
            for s in self.sessions.values()
            if s.trip_id == trip_id and not s.status.is_terminal
        ]

    async def save_if_status(self, session: TrackingSession, expected_status: TrackingStatus) -> bool:
        stored = self.sessions.get(session.session_id)
        if stored is None or stored.status != expected_status:
            return False
        self.sessions[session.session_id] = session.model_copy(deep=True)
        return True


class InMemoryTripRepository:
    def __init__(self, trips: list[TripDTO] | None = None) -> None:
        self.trips: dict[str, TripDTO] = {t.id: t for t in trips or []}
        self.status_updates: list[tuple[str, TripStatus]] = []

    async def get_by_id(self, trip_id: str) -> Optional[TripDTO]:
        trip = self.trips.get(trip_id)
        return trip.model_copy(deep=True) if trip else None

    async def add_tracking_session(self, trip_id: str, session_id: str) -> None:
        self.trips[trip_id].tracking_sessions.append(session_id)

    async def update_status(self, trip_id: str, status: TripStatus) -> bool:
        trip = self.trips.get(trip_id)
        if trip is None:
            return False
        trip.status = status
        self.status_updates.append((trip_id, status))
        return True

    async def complete_with_stats(self, trip_id: str, stats: dict[str, Any] | None) -> bool:
        trip = self.trips.get(trip_id)
        if trip is None:
            return False
        trip.status = TripStatus.COMPLETED
        trip.stats = stats
        trip.completed_at = datetime.now(timezone.utc)
        return True


class InMemoryUserRepository:
    def __init__(self, users: list[UserSnapshot] | None = None) -> None:
        self.users: dict[str, UserSnapshot] = {u.id: u for u in users or []}
        self.last_seen: dict[str, datetime] = {}

    async def get_snapshot(self, user_id: str) -> Optional[UserSnapshot]:
        return self.users.get(user_id)

    async def touch_last_seen(self, user_id: str, when: datetime | None = None) -> None:
        self.last_seen[user_id] = when or datetime.now(timezone.utc)


class InMemoryMessageRepository:
    def __init__(self) -> None:
        self.messages: list[MessageDTO] = []

    async def create(
        self,
        trip_id: str,
        sender_id: str,
        content: str,
        message_type: MessageType = MessageType.TEXT,
    ) -> MessageDTO:
        message = MessageDTO(
            id=str(uuid.uuid4()),
            trip_id=trip_id,
            sender_id=sender_id,
            content=content,
            type=message_type,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message


class InMemoryNotificationRepository:
    def __init__(self) -> None:
        self.notifications: dict[str, NotificationDTO] = {}

    async def create(self, dto: CreateNotification) -> NotificationDTO:
        stored = NotificationDTO(
            **dto.model_dump(),
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
        )
        self.notifications[stored.id] = stored
        return stored

    async def create_many(self, dtos: list[CreateNotification]) -> int:
        for dto in dtos:
            await self.create(dto)
        return len(dtos)

    async def mark_read(self, notification_id: str) -> bool:
        stored = self.notifications.get(notification_id)
        if stored is None:
            return False
        stored.status = "read"
        stored.read_at = datetime.now(timezone.utc)
        return True


class FakeWebSocket:
    """Captures frames sent through Connection.send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]

    def last(self, event: str) -> dict[str, Any]:
        for frame in reversed(self.sent):
            if frame["event"] == event:
                return frame["data"]
        raise AssertionError(f"event {event!r} was not sent; got {self.events()}")


# =============================================================================
# MODEL FIXTURES
# =============================================================================

@pytest.fixture
def users() -> list[UserSnapshot]:
    return [
        UserSnapshot(id=ORGANIZER_ID, name="Olena", avatar="https://cdn.example.com/o.png"),
        UserSnapshot(id=RIDER_ID, name="Ravi"),
        UserSnapshot(id=PENDING_RIDER_ID, name="Pat"),
        UserSnapshot(id=SECOND_RIDER_ID, name="Sam"),
        UserSnapshot(id=OUTSIDER_ID, name="Otto"),
    ]


@pytest.fixture
def trip() -> TripDTO:
    return TripDTO(
        id=TRIP_ID,
        organizer_id=ORGANIZER_ID,
        title="Sunrise loop",
        start_location=TripLocation(name="Gate", lat=28.0, lng=77.0),
        end_location=TripLocation(name="Lake", lat=28.01, lng=77.01),
        status=TripStatus.PLANNING,
        participants=[
            TripParticipant(user_id=RIDER_ID, status=ParticipantStatus.APPROVED),
            TripParticipant(user_id=PENDING_RIDER_ID, status=ParticipantStatus.PENDING),
            TripParticipant(user_id=SECOND_RIDER_ID, status=ParticipantStatus.APPROVED),
        ],
    )


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_repository() -> InMemoryTrackingSessionRepository:
    return InMemoryTrackingSessionRepository()


@pytest.fixture
def trip_repository(trip: TripDTO) -> InMemoryTripRepository:
    return InMemoryTripRepository([trip])


@pytest.fixture
def user_repository(users: list[UserSnapshot]) -> InMemoryUserRepository:
    return InMemoryUserRepository(users)


@pytest.fixture
def message_repository() -> InMemoryMessageRepository:
    return InMemoryMessageRepository()


@pytest.fixture
def notification_repository() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture
def tracking_service(
    session_repository: InMemoryTrackingSessionRepository,
    trip_repository: InMemoryTripRepository,
    user_repository: InMemoryUserRepository,
    clock: FakeClock,
) -> TrackingService:
    return TrackingService(session_repository, trip_repository, user_repository, clock=clock)


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(registry: ConnectionRegistry) -> RoomBroadcaster:
    return RoomBroadcaster(registry)


@pytest.fixture
def realtime_handlers(
    registry: ConnectionRegistry,
    broadcaster: RoomBroadcaster,
    trip_repository: InMemoryTripRepository,
    user_repository: InMemoryUserRepository,
    message_repository: InMemoryMessageRepository,
    notification_repository: InMemoryNotificationRepository,
    clock: FakeClock,
) -> RealtimeEventHandlers:
    return RealtimeEventHandlers(
        registry,
        broadcaster,
        trip_repository,
        user_repository,
        message_repository,
        notification_repository,
        clock=clock,
    )


@pytest.fixture
def make_connection(users: list[UserSnapshot]):
    """Factory: make_connection(user_id, fail=False) -> Connection over a FakeWebSocket."""
    by_id = {u.id: u for u in users}

    def _make(user_id: str, fail: bool = False) -> Connection:
        user = by_id.get(user_id) or UserSnapshot(id=user_id, name=user_id)
        return Connection(FakeWebSocket(fail=fail), user)

    return _make


# =============================================================================
# INFRASTRUCTURE MOCKS
# =============================================================================

@pytest.fixture
def mock_db() -> MagicMock:
    """DatabaseManager mock."""
    db = MagicMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    db.transaction = MagicMock()
    return db


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    return Path(__file__).parent.parent


@pytest.fixture
def mock_config() -> dict[str, Any]:
    return {
        "_comment_system": "ignored",
        "PROJECT_NAME": "ridehub_test",
        "VERSION": "9.9.9-test",
        "DEBUG": False,
        "ENVIRONMENT": "test",
        "HOST": "127.0.0.1",
        "PORT": 8100,
        "API_PREFIX": "/api/v1",
        "WS_PATH": "/ws",
        "LOG_LEVEL": "INFO",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "DB_HOST": "db.internal",
        "DB_PORT": 5433,
        "DB_NAME": "ridehub_test",
        "DB_USER": "rider",
        "DB_PASSWORD": "",
        "DB_MIN_POOL_SIZE": 1,
        "DB_MAX_POOL_SIZE": 3,
        "JWT_SECRET": "",
        "JWT_ALGORITHM": "HS256",
        "JWT_EXPIRE_MINUTES": 30,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, indent=2))
    return config_file
