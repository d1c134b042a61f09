# ridehub/core/trips/repository.py
"""
Trip repository.
Read access to trips and their participants, plus the few writes the
tracking and real-time layers perform on a trip.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Optional

from ridehub.common.constants import TypeMsg
from ridehub.common.exceptions import PersistenceError
from ridehub.common.logger import log_error, log_info
from ridehub.infra.database import DatabaseManager
from ridehub.shared.models.enums import ParticipantStatus, TripStatus
from ridehub.shared.models.trip_dto import TripDTO, TripLocation, TripParticipant


def _location(value: Any) -> Optional[TripLocation]:
    if value is None:
        return None
    if isinstance(value, str):
        value = json.loads(value)
    return TripLocation.model_validate(value)


class TripRepository:
    """Trips stored in PostgreSQL."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get_by_id(self, trip_id: str) -> Optional[TripDTO]:
        """
        Loads a trip with its participants and tracking session list.

        Args:
            trip_id: Trip id

        Returns:
            The trip or None when it does not exist
        """
        try:
            row = await self._db.fetchrow(
                """
                SELECT id, organizer_id, title, start_location, end_location,
                       status, started_at, completed_at, stats
                FROM trips
                WHERE id = $1
                """,
                trip_id,
            )
            if row is None:
                return None

            participant_rows = await self._db.fetch(
                """
                SELECT user_id, status
                FROM trip_participants
                WHERE trip_id = $1
                ORDER BY joined_at
                """,
                trip_id,
            )
            session_rows = await self._db.fetch(
                """
                SELECT session_id
                FROM trip_tracking_sessions
                WHERE trip_id = $1
                ORDER BY added_at
                """,
                trip_id,
            )
        except Exception as e:
            await log_error(f"Failed to load trip {trip_id}: {e}")
            raise PersistenceError("Failed to load trip") from e

        stats = row["stats"]
        if isinstance(stats, str):
            stats = json.loads(stats)

        return TripDTO(
            id=row["id"],
            organizer_id=row["organizer_id"],
            title=row["title"],
            start_location=_location(row["start_location"]),
            end_location=_location(row["end_location"]),
            status=TripStatus(row["status"]),
            participants=[
                TripParticipant(user_id=p["user_id"], status=ParticipantStatus(p["status"]))
                for p in participant_rows
            ],
            tracking_sessions=[s["session_id"] for s in session_rows],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            stats=stats,
        )

    async def add_tracking_session(self, trip_id: str, session_id: str) -> None:
        """Appends a session id to the trip's session list."""
        try:
            await self._db.execute(
                """
                INSERT INTO trip_tracking_sessions (trip_id, session_id)
                VALUES ($1, $2)
                ON CONFLICT DO NOTHING
                """,
                trip_id,
                session_id,
            )
        except Exception as e:
            await log_error(f"Failed to link session {session_id} to trip {trip_id}: {e}")
            raise PersistenceError("Failed to update trip") from e

    async def update_status(self, trip_id: str, status: TripStatus) -> bool:
        """
        Sets the trip status (and started_at / completed_at where relevant).

        Returns:
            False when the trip does not exist
        """
        now = datetime.now(timezone.utc)
        if status == TripStatus.ACTIVE:
            query = "UPDATE trips SET status = $2, started_at = COALESCE(started_at, $3), updated_at = $3 WHERE id = $1"
        elif status == TripStatus.COMPLETED:
            query = "UPDATE trips SET status = $2, completed_at = $3, updated_at = $3 WHERE id = $1"
        else:
            query = "UPDATE trips SET status = $2, updated_at = $3 WHERE id = $1"

        try:
            result = await self._db.execute(query, trip_id, status.value, now)
        except Exception as e:
            await log_error(f"Failed to set trip {trip_id} status to {status}: {e}")
            raise PersistenceError("Failed to update trip") from e

        await log_info(f"Trip {trip_id} -> {status}", type_msg=TypeMsg.DEBUG)
        return result.endswith(" 1")

    async def complete_with_stats(self, trip_id: str, stats: dict[str, Any] | None) -> bool:
        """Marks the trip completed and stores the final statistics."""
        now = datetime.now(timezone.utc)
        try:
            result = await self._db.execute(
                """
                UPDATE trips
                SET status = $2, completed_at = $3, stats = $4::jsonb, updated_at = $3
                WHERE id = $1
                """,
                trip_id,
                TripStatus.COMPLETED.value,
                now,
                json.dumps(stats or {}),
            )
        except Exception as e:
            await log_error(f"Failed to complete trip {trip_id}: {e}")
            raise PersistenceError("Failed to update trip") from e

        return result.endswith(" 1")
