import json
from datetime import datetime, timezone
from typing import Any, List, Optional

import asyncpg

from ridehub.common.exceptions import ConflictError, PersistenceError
from ridehub.common.logger import log_error
from ridehub.infra.database import DatabaseManager
from ridehub.shared.models.enums import TrackingStatus
from ridehub.shared.models.tracking_dto import TrackingSession

_COLUMNS = """
    session_id, trip_id, rider_id, status, started_at, ended_at,
    route_points, current_location, total_distance, total_duration,
    average_speed, max_speed, pauses, total_pause_time, alerts,
    created_at, updated_at
"""

_OPEN_STATUSES = [TrackingStatus.ACTIVE.value, TrackingStatus.PAUSED.value]


def _json(value: Any) -> Any:
    # asyncpg hands JSONB back as text unless a codec is registered
    if isinstance(value, str):
        return json.loads(value)
    return value


def _dump(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str)


class TrackingSessionRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def _map_row(self, row) -> TrackingSession:
        return TrackingSession(
            session_id=row["session_id"],
            trip_id=row["trip_id"],
            rider_id=row["rider_id"],
            status=TrackingStatus(row["status"]),
            started_at=row["started_at"],
            ended_at=row["ended_at"],
            route_points=_json(row["route_points"]) or [],
            current_location=_json(row["current_location"]),
            total_distance=row["total_distance"],
            total_duration=row["total_duration"],
            average_speed=row["average_speed"],
            max_speed=row["max_speed"],
            pauses=_json(row["pauses"]) or [],
            total_pause_time=row["total_pause_time"],
            alerts=_json(row["alerts"]) or [],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    async def create(self, session: TrackingSession) -> TrackingSession:
        """
        Inserts a new session.

        The partial unique index on (trip_id, rider_id) for active/paused rows
        turns a concurrent duplicate start into ConflictError.
        """
        try:
            row = await self.db.fetchrow(
                f"""
                INSERT INTO tracking_sessions (
                    session_id, trip_id, rider_id, status, started_at,
                    route_points, pauses, alerts
                )
                VALUES ($1, $2, $3, $4, $5, '[]'::jsonb, '[]'::jsonb, '[]'::jsonb)
                RETURNING {_COLUMNS}
                """,
                session.session_id,
                session.trip_id,
                session.rider_id,
                session.status.value,
                session.started_at,
            )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                "Active tracking session already exists",
                details={"tripId": session.trip_id},
            ) from e
        except Exception as e:
            await log_error(f"Failed to create tracking session {session.session_id}: {e}")
            raise PersistenceError("Failed to create tracking session") from e

        return self._map_row(row)

    async def get(self, session_id: str) -> Optional[TrackingSession]:
        try:
            row = await self.db.fetchrow(
                f"SELECT {_COLUMNS} FROM tracking_sessions WHERE session_id = $1",
                session_id,
            )
        except Exception as e:
            await log_error(f"Failed to load tracking session {session_id}: {e}")
            raise PersistenceError("Failed to load tracking session") from e
        return self._map_row(row) if row else None

    async def find_open(self, trip_id: str, rider_id: str) -> Optional[TrackingSession]:
        """The rider's active or paused session on a trip, if any."""
        try:
            row = await self.db.fetchrow(
                f"""
                SELECT {_COLUMNS} FROM tracking_sessions
                WHERE trip_id = $1 AND rider_id = $2 AND status = ANY($3::text[])
                LIMIT 1
                """,
                trip_id,
                rider_id,
                _OPEN_STATUSES,
            )
        except Exception as e:
            await log_error(f"Failed to look up open session for rider {rider_id} on trip {trip_id}: {e}")
            raise PersistenceError("Failed to load tracking session") from e
        return self._map_row(row) if row else None

    async def list_open_for_trip(self, trip_id: str) -> List[TrackingSession]:
        try:
            rows = await self.db.fetch(
                f"""
                SELECT {_COLUMNS} FROM tracking_sessions
                WHERE trip_id = $1 AND status = ANY($2::text[])
                ORDER BY started_at
                """,
                trip_id,
                _OPEN_STATUSES,
            )
        except Exception as e:
            await log_error(f"Failed to list live sessions for trip {trip_id}: {e}")
            raise PersistenceError("Failed to load tracking sessions") from e
        return [self._map_row(row) for row in rows]

    async def save_if_status(self, session: TrackingSession, expected_status: TrackingStatus) -> bool:
        """
        Writes every mutable field, but only if the stored status still equals
        expected_status (compare-and-swap).

        Returns:
            False when another writer changed the status first
        """
        try:
            updated = await self.db.fetchval(
                """
                UPDATE tracking_sessions
                SET status = $3,
                    ended_at = $4,
                    route_points = $5::jsonb,
                    current_location = $6::jsonb,
                    total_distance = $7,
                    total_duration = $8,
                    average_speed = $9,
                    max_speed = $10,
                    pauses = $11::jsonb,
                    total_pause_time = $12,
                    alerts = $13::jsonb,
                    updated_at = $14
                WHERE session_id = $1 AND status = $2
                RETURNING session_id
                """,
                session.session_id,
                expected_status.value,
                session.status.value,
                session.ended_at,
                _dump([p.model_dump(mode="json") for p in session.route_points]),
                _dump(session.current_location.model_dump(mode="json") if session.current_location else None),
                session.total_distance,
                session.total_duration,
                session.average_speed,
                session.max_speed,
                _dump([p.model_dump(mode="json") for p in session.pauses]),
                session.total_pause_time,
                _dump([a.model_dump(mode="json") for a in session.alerts]),
                datetime.now(timezone.utc),
            )
        except Exception as e:
            await log_error(f"Failed to save tracking session {session.session_id}: {e}")
            raise PersistenceError("Failed to save tracking session") from e

        return updated is not None
