# ridehub/services/realtime_ws/rooms.py
"""
Room membership and fan-out.

Rooms are keyed by purpose and trip id (trip-chat:<id>, trip-location:<id>).
Membership is per connection; per-user delivery goes through the registry.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from ridehub.common.logger import log_warning
from ridehub.services.realtime_ws.connection_manager import Connection, ConnectionRegistry


class RoomPurpose(str, Enum):
    TRIP_CHAT = "trip-chat"
    TRIP_LOCATION = "trip-location"

    def __str__(self) -> str:
        return self.value


class DeliveryResult(str, Enum):
    """Outcome of a per-user delivery. Offline recipients are not queued."""
    ONLINE = "online"
    OFFLINE = "offline"

    def __str__(self) -> str:
        return self.value


def room_key(purpose: RoomPurpose, trip_id: str) -> str:
    return f"{purpose.value}:{trip_id}"


class RoomBroadcaster:
    """
    Room membership plus delivery helpers.

    A failed send to one member is logged and skipped; the rest of the
    room still receives the event.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

        # room -> members
        self._rooms: dict[str, set[Connection]] = {}

        # connection_id -> rooms (for leave_all)
        self._memberships: dict[str, set[str]] = {}

        self._total_broadcasts: int = 0
        self._failed_sends: int = 0

    def join(self, connection: Connection, room: str) -> None:
        self._rooms.setdefault(room, set()).add(connection)
        self._memberships.setdefault(connection.connection_id, set()).add(room)

    def leave(self, connection: Connection, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self._rooms[room]

        rooms = self._memberships.get(connection.connection_id)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._memberships[connection.connection_id]

    def leave_all(self, connection: Connection) -> list[str]:
        """Removes the connection from every room. Returns the rooms it left."""
        rooms = list(self._memberships.get(connection.connection_id, ()))
        for room in rooms:
            self.leave(connection, room)
        return rooms

    def members(self, room: str) -> set[Connection]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, connection: Connection) -> set[str]:
        return set(self._memberships.get(connection.connection_id, ()))

    async def broadcast_to_room(
        self,
        room: str,
        event: str,
        payload: dict[str, Any],
        exclude: Connection | None = None,
    ) -> int:
        """
        Sends an event to every member of a room.

        Returns:
            Number of members the event was sent to
        """
        self._total_broadcasts += 1
        sent = 0
        # Iterate over a copy: a member may leave while we await its send
        for member in list(self._rooms.get(room, ())):
            if member is exclude:
                continue
            if await self._safe_send(member, event, payload):
                sent += 1
        return sent

    async def deliver_to_user(self, user_id: str, event: str, payload: dict[str, Any]) -> DeliveryResult:
        """Sends an event to the user's registered connection, if any."""
        info = self._registry.lookup(user_id)
        if info is None:
            return DeliveryResult.OFFLINE

        if await self._safe_send(info.connection, event, payload):
            return DeliveryResult.ONLINE
        return DeliveryResult.OFFLINE

    async def send_to(self, connection: Connection, event: str, payload: dict[str, Any]) -> bool:
        """Direct reply to one connection (acks and errors)."""
        return await self._safe_send(connection, event, payload)

    async def _safe_send(self, connection: Connection, event: str, payload: dict[str, Any]) -> bool:
        try:
            await connection.send(event, payload)
            return True
        except Exception as e:
            self._failed_sends += 1
            await log_warning(f"Send of '{event}' to user {connection.user_id} failed: {e}")
            return False

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_rooms": len(self._rooms),
            "total_broadcasts": self._total_broadcasts,
            "failed_sends": self._failed_sends,
        }
