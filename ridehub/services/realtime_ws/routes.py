# ridehub/services/realtime_ws/routes.py
"""
WebSocket endpoint and presence / stats REST endpoints.

WebSocket:
- {WS_PATH}?token=<jwt> (or Authorization: Bearer <jwt>)

REST:
- GET /realtime/stats: connection and room counters
- GET /realtime/online/{user_id}: presence of one user
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from ridehub.common.constants import WS_POLICY_VIOLATION
from ridehub.common.exceptions import AuthenticationError
from ridehub.common.logger import log_warning
from ridehub.config import settings
from ridehub.services.auth.dependencies import get_current_user_id, resolve_websocket_user
from ridehub.services.realtime_ws.connection_manager import ConnectionRegistry
from ridehub.services.realtime_ws.dependencies import get_broadcaster, get_realtime_handlers, get_registry
from ridehub.services.realtime_ws.handlers import RealtimeEventHandlers
from ridehub.services.realtime_ws.rooms import RoomBroadcaster


# === MODELS ===

class StatsResponse(BaseModel):
    """Connection statistics."""
    active_connections: int
    total_connections_ever: int
    total_messages_sent: int
    total_rooms: int
    total_broadcasts: int
    failed_sends: int


class PresenceResponse(BaseModel):
    user_id: str
    online: bool


# === REST ===

router = APIRouter(
    prefix="/realtime",
    tags=["Realtime"],
    dependencies=[Depends(get_current_user_id)],
)


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    registry: ConnectionRegistry = Depends(get_registry),
    broadcaster: RoomBroadcaster = Depends(get_broadcaster),
) -> StatsResponse:
    return StatsResponse(**registry.get_stats(), **broadcaster.get_stats())


@router.get("/online/{user_id}", response_model=PresenceResponse)
async def get_presence(
    user_id: str,
    registry: ConnectionRegistry = Depends(get_registry),
) -> PresenceResponse:
    return PresenceResponse(user_id=user_id, online=registry.is_online(user_id))


# === WEBSOCKET ===

ws_router = APIRouter(tags=["Realtime"])


@ws_router.websocket(settings.server.WS_PATH)
async def websocket_endpoint(
    websocket: WebSocket,
    handlers: RealtimeEventHandlers = Depends(get_realtime_handlers),
) -> None:
    """
    Authenticated event channel.

    Inbound frames: {"event": "<client event>", "data": {...}}
    A missing or invalid token closes the handshake with 1008.
    """
    user_id = resolve_websocket_user(websocket)
    if user_id is None:
        await log_warning("WebSocket handshake rejected: missing or invalid token")
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    try:
        user = await handlers.authenticate(user_id)
    except AuthenticationError as e:
        await log_warning(f"WebSocket handshake rejected for {user_id}: {e.message}")
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = await handlers.on_connect(websocket, user)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # Text and binary frames are both dispatched; a bad frame becomes an error event
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await handlers.dispatch(connection, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await handlers.on_disconnect(connection)
