# ridehub/services/realtime_ws/connection_manager.py
"""
Connection registry.
Maps an authenticated user id to their live WebSocket connection.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from ridehub.shared.models.user_dto import UserSnapshot


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Connection:
    """
    One accepted WebSocket plus the user it belongs to.

    Frames go out as {"event": <name>, "data": {...}}.
    """

    def __init__(self, websocket: WebSocket, user: UserSnapshot) -> None:
        self.connection_id = uuid.uuid4().hex
        self.websocket = websocket
        self.user = user
        self.user_id = user.id
        self.messages_sent = 0

    async def send(self, event: str, data: dict[str, Any]) -> None:
        await self.websocket.send_json({"event": str(event), "data": data})
        self.messages_sent += 1

    def __repr__(self) -> str:
        return f"Connection(user_id={self.user_id!r}, id={self.connection_id[:8]})"


@dataclass
class ConnectionInfo:
    """Registry entry."""
    connection: Connection
    user: UserSnapshot
    connected_at: datetime = field(default_factory=_utcnow)
    last_seen: datetime = field(default_factory=_utcnow)


class ConnectionRegistry:
    """
    user_id -> ConnectionInfo, process-local.

    Supports:
    - register (overwrites: the newest connection wins)
    - unregister, optionally only if the entry still belongs to a given connection
    - lookup / is_online / list_active presence queries
    """

    def __init__(self) -> None:
        self._connections: dict[str, ConnectionInfo] = {}

        # Stats
        self._total_connections: int = 0
        self._retired_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        return len(self._connections)

    def register(self, user_id: str, connection: Connection, user: UserSnapshot) -> ConnectionInfo:
        """
        Registers a connection for a user.

        An existing entry is replaced; the older socket is left open and
        simply stops receiving per-user deliveries.
        """
        info = ConnectionInfo(connection=connection, user=user)
        self._connections[user_id] = info
        self._total_connections += 1
        return info

    def unregister(self, user_id: str, connection: Connection | None = None) -> bool:
        """
        Removes a user's entry. No-op when absent.

        When `connection` is given, the entry is removed only if it still
        belongs to that connection, so a stale socket closing late cannot
        evict its replacement.

        Returns:
            True if an entry was removed
        """
        info = self._connections.get(user_id)
        if info is None:
            return False
        if connection is not None and info.connection is not connection:
            return False

        del self._connections[user_id]
        self._retired_messages_sent += info.connection.messages_sent
        return True

    def lookup(self, user_id: str) -> ConnectionInfo | None:
        return self._connections.get(user_id)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    def list_active(self) -> list[ConnectionInfo]:
        """Snapshot; later registrations do not affect the returned list."""
        return list(self._connections.values())

    def touch(self, user_id: str) -> None:
        info = self._connections.get(user_id)
        if info is not None:
            info.last_seen = _utcnow()

    def get_stats(self) -> dict[str, Any]:
        return {
            "active_connections": len(self._connections),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._retired_messages_sent + sum(
                i.connection.messages_sent for i in self._connections.values()
            ),
        }
