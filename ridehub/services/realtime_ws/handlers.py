# ridehub/services/realtime_ws/handlers.py
"""
Real-time event handlers.

Each ClientEvent maps to exactly one coroutine in a closed dispatch table.
Authorization is checked on every event; domain and validation failures go
back to the originating connection as an `error` event.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from fastapi import WebSocket
from pydantic import ValidationError as PydanticValidationError

from ridehub.common.constants import TypeMsg
from ridehub.common.exceptions import (
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    RideHubError,
)
from ridehub.common.logger import log_error, log_info, log_warning
from ridehub.core.messages.repository import MessageRepository
from ridehub.core.notifications.repository import NotificationRepository
from ridehub.core.trips.repository import TripRepository
from ridehub.core.users.repository import UserRepository
from ridehub.services.realtime_ws.connection_manager import Connection, ConnectionRegistry
from ridehub.services.realtime_ws.events import (
    ClientEvent,
    ClientFrame,
    MarkNotificationReadPayload,
    SendMessagePayload,
    SendNotificationPayload,
    ServerEvent,
    StartLocationSharingPayload,
    TripCompletedPayload,
    TripRef,
    TripStartedPayload,
    TripUpdatePayload,
    UpdateLocationPayload,
)
from ridehub.services.realtime_ws.rooms import DeliveryResult, RoomBroadcaster, RoomPurpose, room_key
from ridehub.shared.models.enums import NotificationType, TripStatus
from ridehub.shared.models.message_dto import CreateNotification
from ridehub.shared.models.trip_dto import TripDTO
from ridehub.shared.models.user_dto import UserSnapshot

Handler = Callable[[Connection, dict[str, Any]], Awaitable[None]]

INTERNAL_ERROR_MESSAGE = "Internal server error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe(error: PydanticValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid payload: " + "; ".join(parts)


class RealtimeEventHandlers:
    """
    Stateless per-event logic on top of the registry and the broadcaster.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        broadcaster: RoomBroadcaster,
        trip_repository: TripRepository,
        user_repository: UserRepository,
        message_repository: MessageRepository,
        notification_repository: NotificationRepository,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.registry = registry
        self.broadcaster = broadcaster
        self.trips = trip_repository
        self.users = user_repository
        self.messages = message_repository
        self.notifications = notification_repository
        self.clock = clock

        self._handlers: dict[ClientEvent, Handler] = {
            ClientEvent.JOIN_TRIP_CHAT: self.join_trip_chat,
            ClientEvent.LEAVE_TRIP_CHAT: self.leave_trip_chat,
            ClientEvent.SEND_MESSAGE: self.send_message,
            ClientEvent.TYPING_START: self.typing_start,
            ClientEvent.TYPING_STOP: self.typing_stop,
            ClientEvent.START_LOCATION_SHARING: self.start_location_sharing,
            ClientEvent.UPDATE_LOCATION: self.update_location,
            ClientEvent.STOP_LOCATION_SHARING: self.stop_location_sharing,
            ClientEvent.TRIP_STARTED: self.trip_started,
            ClientEvent.TRIP_COMPLETED: self.trip_completed,
            ClientEvent.TRIP_UPDATE: self.trip_update,
            ClientEvent.SEND_NOTIFICATION: self.send_notification,
            ClientEvent.MARK_NOTIFICATION_READ: self.mark_notification_read,
        }
        missing = set(ClientEvent) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler registered for events: {sorted(e.value for e in missing)}")

    # === CONNECTION LIFECYCLE ===

    async def authenticate(self, user_id: str) -> UserSnapshot:
        """Loads the identity behind a verified token; unknown users are rejected."""
        user = await self.users.get_snapshot(user_id)
        if user is None:
            raise AuthenticationError("User not found")
        return user

    async def on_connect(self, websocket: WebSocket, user: UserSnapshot) -> Connection:
        """Registers an accepted socket and confirms the connection to the client."""
        connection = Connection(websocket, user)
        self.registry.register(user.id, connection, user)

        await log_info(f"User {user.id} ({user.name}) connected, active={self.registry.active_connections}")
        await self.broadcaster.send_to(connection, ServerEvent.CONNECTED, {
            "message": "Connected successfully",
            "userId": user.id,
            "user": user.to_event_user(),
        })
        return connection

    async def on_disconnect(self, connection: Connection) -> None:
        """Leaves every room, unregisters and records last_seen (best effort)."""
        rooms = self.broadcaster.leave_all(connection)
        removed = self.registry.unregister(connection.user_id, connection=connection)

        try:
            await self.users.touch_last_seen(connection.user_id, self.clock())
        except PersistenceError as e:
            await log_warning(f"last_seen not updated for {connection.user_id}: {e.message}")

        await log_info(
            f"User {connection.user_id} disconnected (rooms left: {len(rooms)}, "
            f"{'unregistered' if removed else 'superseded'})"
        )

    async def dispatch(self, connection: Connection, raw: str | bytes | dict[str, Any]) -> None:
        """Parses one inbound frame and runs its handler."""
        try:
            if isinstance(raw, dict):
                frame = ClientFrame.model_validate(raw)
            else:
                frame = ClientFrame.model_validate_json(raw)
        except PydanticValidationError:
            await self._send_error(connection, "Malformed frame: expected {\"event\": ..., \"data\": {...}}")
            return

        try:
            event = ClientEvent(frame.event)
        except ValueError:
            await self._send_error(connection, f"Unknown event: {frame.event}")
            return

        self.registry.touch(connection.user_id)

        try:
            await self._handlers[event](connection, frame.data)
        except RideHubError as e:
            await log_info(
                f"{event} from {connection.user_id} rejected: {e.message}",
                type_msg=TypeMsg.WARNING if e.status_code < 500 else TypeMsg.ERROR,
            )
            await self._send_error(connection, e.message)
        except PydanticValidationError as e:
            await self._send_error(connection, _describe(e))
        except Exception as e:
            await log_error(f"{event} from {connection.user_id} failed: {e}", exc_info=True)
            await self._send_error(connection, INTERNAL_ERROR_MESSAGE)

    # === CHAT ===

    async def join_trip_chat(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = TripRef.model_validate(data)
        await self._require_member(connection, payload.trip_id, "Not authorized to join this chat")

        room = room_key(RoomPurpose.TRIP_CHAT, payload.trip_id)
        self.broadcaster.join(connection, room)

        await self.broadcaster.send_to(connection, ServerEvent.JOINED_TRIP_CHAT, {
            "tripId": payload.trip_id,
            "message": "Joined trip chat successfully",
        })
        await self.broadcaster.broadcast_to_room(room, ServerEvent.USER_JOINED_CHAT, {
            "user": connection.user.to_event_user(),
            "tripId": payload.trip_id,
        }, exclude=connection)

    async def leave_trip_chat(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = TripRef.model_validate(data)
        room = room_key(RoomPurpose.TRIP_CHAT, payload.trip_id)
        self.broadcaster.leave(connection, room)

        await self.broadcaster.send_to(connection, ServerEvent.LEFT_TRIP_CHAT, {
            "tripId": payload.trip_id,
            "message": "Left trip chat successfully",
        })
        await self.broadcaster.broadcast_to_room(room, ServerEvent.USER_LEFT_CHAT, {
            "user": connection.user.to_event_user(),
            "tripId": payload.trip_id,
        })

    async def send_message(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = SendMessagePayload.model_validate(data)
        await self._require_member(connection, payload.trip_id, "Not authorized to send messages")

        message = await self.messages.create(
            payload.trip_id,
            connection.user_id,
            payload.content,
            payload.type,
        )

        # Echoed to the sender as well
        await self.broadcaster.broadcast_to_room(
            room_key(RoomPurpose.TRIP_CHAT, payload.trip_id),
            ServerEvent.NEW_MESSAGE,
            {
                "_id": message.id,
                "sender": connection.user.to_event_user(),
                "content": message.content,
                "type": message.type.value,
                "timestamp": message.created_at.isoformat(),
                "tripId": payload.trip_id,
            },
        )

    async def typing_start(self, connection: Connection, data: dict[str, Any]) -> None:
        await self._typing(connection, data, is_typing=True)

    async def typing_stop(self, connection: Connection, data: dict[str, Any]) -> None:
        await self._typing(connection, data, is_typing=False)

    async def _typing(self, connection: Connection, data: dict[str, Any], is_typing: bool) -> None:
        payload = TripRef.model_validate(data)
        await self.broadcaster.broadcast_to_room(
            room_key(RoomPurpose.TRIP_CHAT, payload.trip_id),
            ServerEvent.USER_TYPING,
            {"user": connection.user.to_event_user(), "isTyping": is_typing, "tripId": payload.trip_id},
            exclude=connection,
        )

    # === LOCATION SHARING ===

    async def start_location_sharing(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = StartLocationSharingPayload.model_validate(data)
        await self._require_member(connection, payload.trip_id, "Not authorized to share location")

        room = room_key(RoomPurpose.TRIP_LOCATION, payload.trip_id)
        self.broadcaster.join(connection, room)

        await self.broadcaster.broadcast_to_room(room, ServerEvent.USER_LOCATION_UPDATE, {
            "user": connection.user.to_event_user(),
            "location": {
                "lat": payload.lat,
                "lng": payload.lng,
                "accuracy": payload.accuracy,
                "timestamp": self.clock().isoformat(),
            },
            "tripId": payload.trip_id,
        }, exclude=connection)
        await self.broadcaster.send_to(connection, ServerEvent.LOCATION_SHARING_STARTED, {
            "tripId": payload.trip_id,
            "message": "Location sharing started",
        })

    async def update_location(self, connection: Connection, data: dict[str, Any]) -> None:
        # Relay only; tracking sessions are fed through the HTTP API
        payload = UpdateLocationPayload.model_validate(data)
        await self.broadcaster.broadcast_to_room(
            room_key(RoomPurpose.TRIP_LOCATION, payload.trip_id),
            ServerEvent.USER_LOCATION_UPDATE,
            {
                "user": connection.user.to_event_user(),
                "location": {
                    "lat": payload.lat,
                    "lng": payload.lng,
                    "accuracy": payload.accuracy,
                    "speed": payload.speed,
                    "heading": payload.heading,
                    "timestamp": self.clock().isoformat(),
                },
                "tripId": payload.trip_id,
            },
            exclude=connection,
        )

    async def stop_location_sharing(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = TripRef.model_validate(data)
        room = room_key(RoomPurpose.TRIP_LOCATION, payload.trip_id)
        self.broadcaster.leave(connection, room)

        await self.broadcaster.broadcast_to_room(room, ServerEvent.USER_STOPPED_SHARING, {
            "user": connection.user.to_event_user(),
            "tripId": payload.trip_id,
        })
        await self.broadcaster.send_to(connection, ServerEvent.LOCATION_SHARING_STOPPED, {
            "tripId": payload.trip_id,
            "message": "Location sharing stopped",
        })

    # === TRIP LIFECYCLE ===

    async def trip_started(self, connection: Connection, data: dict[str, Any]) -> None:
        """
        Marks the trip active and tells every participant.

        The caller is expected to have gone through the HTTP start flow, so no
        membership check is made here. A notification is stored for every
        participant so offline riders see it later.
        """
        payload = TripStartedPayload.model_validate(data)
        trip = await self._load_trip(payload.trip_id)
        await self.trips.update_status(trip.id, TripStatus.ACTIVE)

        text = f'Trip "{trip.title}" has started!'
        organizer = await self._organizer(trip)
        participants = trip.participant_ids()

        delivered = await self._deliver_to_participants(participants, ServerEvent.TRIP_STATUS_UPDATE, {
            "tripId": trip.id,
            "status": TripStatus.ACTIVE.value,
            "message": text,
            "organizer": organizer,
            "sessionId": payload.session_id,
        })

        await self.notifications.create_many([
            CreateNotification(
                recipient_id=user_id,
                sender_id=trip.organizer_id,
                type=NotificationType.TRIP_STARTED,
                title="Trip Started",
                message=text,
                data={"relatedEntity": {"type": "trip", "id": trip.id}},
            )
            for user_id in participants
        ])

        await log_info(f"Trip {trip.id} started by {connection.user_id}: {delivered}/{len(participants)} online")

    async def trip_completed(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = TripCompletedPayload.model_validate(data)
        trip = await self._load_trip(payload.trip_id)
        await self.trips.complete_with_stats(trip.id, payload.stats)

        delivered = await self._deliver_to_participants(trip.participant_ids(), ServerEvent.TRIP_STATUS_UPDATE, {
            "tripId": trip.id,
            "status": TripStatus.COMPLETED.value,
            "message": f'Trip "{trip.title}" has been completed!',
            "stats": payload.stats,
            "organizer": await self._organizer(trip),
        })

        await log_info(f"Trip {trip.id} completed by {connection.user_id}: {delivered} participants notified")

    async def trip_update(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = TripUpdatePayload.model_validate(data)
        trip = await self._load_trip(payload.trip_id)

        await self._deliver_to_participants(trip.participant_ids(), ServerEvent.TRIP_UPDATE, {
            "tripId": trip.id,
            "updateType": payload.update_type,
            "updateData": payload.update_data,
            "updatedBy": connection.user.to_event_user(),
            "timestamp": self.clock().isoformat(),
        })

    # === NOTIFICATIONS ===

    async def send_notification(self, connection: Connection, data: dict[str, Any]) -> None:
        """Stores the notification, then pushes it if the recipient is online."""
        payload = SendNotificationPayload.model_validate(data)

        notification = await self.notifications.create(CreateNotification(
            recipient_id=payload.recipient_id,
            sender_id=connection.user_id,
            type=payload.type,
            title=payload.title,
            message=payload.message,
            data=payload.data,
        ))

        result = await self.broadcaster.deliver_to_user(payload.recipient_id, ServerEvent.NOTIFICATION, {
            "_id": notification.id,
            "title": notification.title,
            "message": notification.message,
            "type": notification.type.value,
            "data": notification.data,
            "timestamp": notification.created_at.isoformat(),
        })

        await self.broadcaster.send_to(connection, ServerEvent.NOTIFICATION_SENT, {
            "message": "Notification sent successfully",
            "recipientId": payload.recipient_id,
            "delivered": result == DeliveryResult.ONLINE,
        })

    async def mark_notification_read(self, connection: Connection, data: dict[str, Any]) -> None:
        payload = MarkNotificationReadPayload.model_validate(data)

        if not await self.notifications.mark_read(payload.notification_id):
            raise NotFoundError("Notification not found")

        await self.broadcaster.send_to(connection, ServerEvent.NOTIFICATION_MARKED_READ, {
            "message": "Notification marked as read",
            "notificationId": payload.notification_id,
        })

    # === HELPERS ===

    async def _load_trip(self, trip_id: str) -> TripDTO:
        trip = await self.trips.get_by_id(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        return trip

    async def _require_member(self, connection: Connection, trip_id: str, message: str) -> TripDTO:
        trip = await self._load_trip(trip_id)
        if not trip.is_member(connection.user_id):
            raise ForbiddenError(message)
        return trip

    async def _organizer(self, trip: TripDTO) -> dict[str, Any]:
        organizer = await self.users.get_snapshot(trip.organizer_id)
        if organizer is None:
            return {"_id": trip.organizer_id, "name": None, "avatar": None}
        return organizer.to_event_user()

    async def _deliver_to_participants(self, user_ids: list[str], event: ServerEvent, payload: dict[str, Any]) -> int:
        """Per-user delivery; offline participants are skipped. Returns how many were online."""
        online = 0
        for user_id in user_ids:
            if await self.broadcaster.deliver_to_user(user_id, event, payload) == DeliveryResult.ONLINE:
                online += 1
        return online

    async def _send_error(self, connection: Connection, message: str) -> None:
        await self.broadcaster.send_to(connection, ServerEvent.ERROR, {"message": message})
