from fastapi import Request, WebSocket

from ridehub.services.realtime_ws.connection_manager import ConnectionRegistry
from ridehub.services.realtime_ws.handlers import RealtimeEventHandlers
from ridehub.services.realtime_ws.rooms import RoomBroadcaster


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_broadcaster(request: Request) -> RoomBroadcaster:
    return request.app.state.broadcaster


def get_realtime_handlers(websocket: WebSocket) -> RealtimeEventHandlers:
    return websocket.app.state.realtime_handlers
