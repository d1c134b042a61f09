# ridehub/services/realtime_ws/events.py
"""
Real-time event names and payload models.

Frames in both directions are {"event": <name>, "data": {...}};
payload keys are camelCase on the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from ridehub.shared.models.common import CamelModel
from ridehub.shared.models.enums import MessageType, NotificationType


class ClientEvent(str, Enum):
    """Events a client may emit."""
    JOIN_TRIP_CHAT = "join_trip_chat"
    LEAVE_TRIP_CHAT = "leave_trip_chat"
    SEND_MESSAGE = "send_message"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    START_LOCATION_SHARING = "start_location_sharing"
    UPDATE_LOCATION = "update_location"
    STOP_LOCATION_SHARING = "stop_location_sharing"
    TRIP_STARTED = "trip_started"
    TRIP_COMPLETED = "trip_completed"
    TRIP_UPDATE = "trip_update"
    SEND_NOTIFICATION = "send_notification"
    MARK_NOTIFICATION_READ = "mark_notification_read"

    def __str__(self) -> str:
        return self.value


class ServerEvent(str, Enum):
    """Events the server emits."""
    CONNECTED = "connected"
    ERROR = "error"
    JOINED_TRIP_CHAT = "joined_trip_chat"
    LEFT_TRIP_CHAT = "left_trip_chat"
    USER_JOINED_CHAT = "user_joined_chat"
    USER_LEFT_CHAT = "user_left_chat"
    NEW_MESSAGE = "new_message"
    USER_TYPING = "user_typing"
    USER_LOCATION_UPDATE = "user_location_update"
    LOCATION_SHARING_STARTED = "location_sharing_started"
    LOCATION_SHARING_STOPPED = "location_sharing_stopped"
    USER_STOPPED_SHARING = "user_stopped_sharing"
    TRIP_STATUS_UPDATE = "trip_status_update"
    TRIP_UPDATE = "trip_update"
    NOTIFICATION = "notification"
    NOTIFICATION_SENT = "notification_sent"
    NOTIFICATION_MARKED_READ = "notification_marked_read"

    def __str__(self) -> str:
        return self.value


class ClientFrame(BaseModel):
    """Envelope of an inbound frame. The event name is checked by the dispatcher."""
    event: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


# === PAYLOADS ===

class TripRef(CamelModel):
    trip_id: str = Field(..., min_length=1)


class SendMessagePayload(TripRef):
    content: str = Field(..., min_length=1)
    type: MessageType = MessageType.TEXT


class StartLocationSharingPayload(TripRef):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = None


class UpdateLocationPayload(StartLocationSharingPayload):
    speed: Optional[float] = None
    heading: Optional[float] = None


class TripStartedPayload(TripRef):
    session_id: Optional[str] = None


class TripCompletedPayload(TripRef):
    stats: Optional[dict[str, Any]] = None


class TripUpdatePayload(TripRef):
    update_type: str = Field(..., min_length=1)
    update_data: Any = None


class SendNotificationPayload(CamelModel):
    recipient_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.GENERAL
    data: dict[str, Any] = Field(default_factory=dict)


class MarkNotificationReadPayload(CamelModel):
    notification_id: str = Field(..., min_length=1)
