import secrets
import string
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ridehub.common.constants import (
    DEFAULT_PAUSE_REASON,
    SESSION_ID_PREFIX,
    SESSION_ID_SUFFIX_LENGTH,
    TypeMsg,
)
from ridehub.common.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ridehub.common.logger import log_info
from ridehub.core.trips.repository import TripRepository
from ridehub.core.users.repository import UserRepository
from ridehub.services.tracking_service.repository import TrackingSessionRepository
from ridehub.services.tracking_service.state_machine import TrackingAction, TrackingStateMachine
from ridehub.services.utils.geo_utils import average_speed, haversine_distance_km, round_half_up
from ridehub.shared.models.common import as_utc
from ridehub.shared.models.enums import TrackingStatus, TripStatus
from ridehub.shared.models.tracking_dto import (
    CurrentLocation,
    Pause,
    RoutePoint,
    TrackingSession,
    TrackingSessionDetail,
)
from ridehub.shared.models.trip_dto import TripDTO, TripSummary

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id(now: datetime) -> str:
    """TRK_<epoch millis>_<random suffix>."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SESSION_ID_SUFFIX_LENGTH))
    return f"{SESSION_ID_PREFIX}_{int(now.timestamp() * 1000)}_{suffix}"


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def apply_point(session: TrackingSession, point: RoutePoint) -> None:
    """
    Appends a route point and updates the running statistics.

    Distance is accumulated only between consecutive points; speed statistics
    change only when the point reports a speed.
    """
    previous = session.route_points[-1] if session.route_points else None

    session.route_points.append(point)
    session.current_location = CurrentLocation(
        lat=point.lat,
        lng=point.lng,
        accuracy=point.accuracy,
        timestamp=point.timestamp,
    )

    if previous is not None:
        session.total_distance += haversine_distance_km(previous.lat, previous.lng, point.lat, point.lng)

    if point.speed is not None:
        session.average_speed = average_speed(session.route_points)
        session.max_speed = max(session.max_speed, point.speed)


def close_open_pause(session: TrackingSession, end_time: datetime) -> Optional[Pause]:
    """Closes the open pause, if any, and adds its rounded minutes to total_pause_time."""
    pause = session.open_pause()
    if pause is None:
        return None

    pause.end_time = end_time
    pause.duration = max(0, round_half_up(minutes_between(pause.start_time, end_time)))
    session.total_pause_time += pause.duration
    return pause


class TrackingService:
    def __init__(
        self,
        repository: TrackingSessionRepository,
        trip_repository: TripRepository,
        user_repository: Optional[UserRepository] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.trip_repository = trip_repository
        self.user_repository = user_repository
        self.clock = clock

    # === lifecycle ===

    async def start(
        self,
        trip_id: str,
        rider_id: str,
        started_at: Optional[datetime] = None,
    ) -> TrackingSession:
        trip = await self._load_trip(trip_id)

        if not trip.is_member(rider_id):
            raise ForbiddenError("Not authorized to track this trip", details={"tripId": trip_id})

        existing = await self.repository.find_open(trip_id, rider_id)
        if existing is not None:
            raise ConflictError(
                "Active tracking session already exists",
                details={"sessionId": existing.session_id},
            )

        now = self.clock()
        session = TrackingSession(
            session_id=generate_session_id(now),
            trip_id=trip_id,
            rider_id=rider_id,
            status=TrackingStatus.ACTIVE,
            started_at=as_utc(started_at) if started_at else now,
        )
        created = await self.repository.create(session)
        await self.trip_repository.add_tracking_session(trip_id, created.session_id)

        await log_info(f"Tracking session {created.session_id} started: trip={trip_id}, rider={rider_id}")
        return created

    async def ingest_point(
        self,
        session_id: str,
        lat: float,
        lng: float,
        timestamp: Optional[datetime] = None,
        speed: Optional[float] = None,
        altitude: Optional[float] = None,
        accuracy: Optional[float] = None,
    ) -> TrackingSession:
        if not -90 <= lat <= 90 or not -180 <= lng <= 180:
            raise ValidationError("Latitude and longitude are out of range")
        if speed is not None and speed < 0:
            raise ValidationError("Speed must not be negative")

        session = await self.get(session_id)
        if not TrackingStateMachine.accepts_points(session.status):
            raise InvalidStateError("Tracking session is not active", details={"status": str(session.status)})

        point = RoutePoint(
            lat=lat,
            lng=lng,
            timestamp=as_utc(timestamp) if timestamp else self.clock(),
            speed=speed,
            altitude=altitude,
            accuracy=accuracy,
        )
        apply_point(session, point)

        if not await self.repository.save_if_status(session, TrackingStatus.ACTIVE):
            raise InvalidStateError("Tracking session is not active")

        await log_info(
            f"Point #{len(session.route_points)} for {session_id}: total={session.total_distance:.3f} km",
            type_msg=TypeMsg.DEBUG,
        )
        return session

    async def pause(self, session_id: str, reason: Optional[str] = None) -> TrackingSession:
        session = await self.get(session_id)
        expected = self._require_transition(session, TrackingAction.PAUSE, "Tracking session is not active")

        session.status = TrackingStateMachine.next_status(expected, TrackingAction.PAUSE)
        session.pauses.append(Pause(start_time=self.clock(), reason=reason or DEFAULT_PAUSE_REASON))

        if not await self.repository.save_if_status(session, expected):
            raise InvalidStateError("Tracking session status changed, retry")

        await log_info(f"Tracking session {session_id} paused ({len(session.pauses)} pauses)")
        return session

    async def resume(self, session_id: str) -> TrackingSession:
        session = await self.get(session_id)
        expected = self._require_transition(session, TrackingAction.RESUME, "Tracking session is not paused")

        session.status = TrackingStateMachine.next_status(expected, TrackingAction.RESUME)
        close_open_pause(session, self.clock())

        if not await self.repository.save_if_status(session, expected):
            raise InvalidStateError("Tracking session status changed, retry")

        await log_info(f"Tracking session {session_id} resumed, total pause {session.total_pause_time} min")
        return session

    async def stop(self, session_id: str, ended_at: Optional[datetime] = None) -> TrackingSession:
        """
        Completes a session. Not idempotent: a second call raises ConflictError.
        """
        session = await self.get(session_id)
        if session.status == TrackingStatus.COMPLETED:
            raise ConflictError("Tracking session already completed", details={"sessionId": session_id})
        expected = self._require_transition(session, TrackingAction.STOP, f"Cannot stop a {session.status} session")

        ended = as_utc(ended_at) if ended_at else self.clock()
        if ended < session.started_at:
            raise ValidationError("endedAt is earlier than startedAt")

        close_open_pause(session, ended)
        session.status = TrackingStateMachine.next_status(expected, TrackingAction.STOP)
        session.ended_at = ended
        session.total_duration = round_half_up(minutes_between(session.started_at, ended))

        active_minutes = session.total_duration - session.total_pause_time
        if active_minutes > 0 and session.total_distance > 0:
            session.average_speed = float(round_half_up(session.total_distance / active_minutes * 60))

        if not await self.repository.save_if_status(session, expected):
            raise ConflictError("Tracking session was stopped or changed concurrently", details={"sessionId": session_id})

        await log_info(
            f"Tracking session {session_id} completed: {session.total_distance:.2f} km, "
            f"{session.total_duration} min, paused {session.total_pause_time} min"
        )

        # The trip completes only when no rider is still tracking it
        remaining = await self.repository.list_open_for_trip(session.trip_id)
        if not remaining:
            await self.trip_repository.update_status(session.trip_id, TripStatus.COMPLETED)
        else:
            await log_info(
                f"Trip {session.trip_id} stays open: {len(remaining)} sessions still tracking",
                type_msg=TypeMsg.DEBUG,
            )

        return session

    # === reads ===

    async def get(self, session_id: str) -> TrackingSession:
        session = await self.repository.get(session_id)
        if session is None:
            raise NotFoundError("Tracking session not found", details={"sessionId": session_id})
        return session

    async def get_detail(self, session_id: str) -> TrackingSessionDetail:
        session = await self.get(session_id)

        trip = await self.trip_repository.get_by_id(session.trip_id)
        rider = None
        if self.user_repository is not None:
            rider = await self.user_repository.get_snapshot(session.rider_id)

        return TrackingSessionDetail(
            **session.model_dump(),
            trip=TripSummary(
                id=trip.id,
                title=trip.title,
                start_location=trip.start_location,
                end_location=trip.end_location,
            ) if trip else None,
            rider=rider,
        )

    async def list_live(self, trip_id: str) -> List[TrackingSession]:
        await self._load_trip(trip_id)
        return await self.repository.list_open_for_trip(trip_id)

    # === helpers ===

    async def _load_trip(self, trip_id: str) -> TripDTO:
        trip = await self.trip_repository.get_by_id(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found", details={"tripId": trip_id})
        return trip

    @staticmethod
    def _require_transition(session: TrackingSession, action: TrackingAction, message: str) -> TrackingStatus:
        if not TrackingStateMachine.can_transition(session.status, action):
            raise InvalidStateError(message, details={"status": str(session.status)})
        return session.status
