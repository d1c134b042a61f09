# ridehub/shared/models/__init__.py
"""
Pydantic models shared between the tracking service and the real-time gateway.
"""

from ridehub.shared.models.common import CamelModel, ErrorResponse, HealthStatus
from ridehub.shared.models.enums import (
    MessageType,
    NotificationPriority,
    NotificationType,
    ParticipantStatus,
    TrackingStatus,
    TripStatus,
)
from ridehub.shared.models.tracking_dto import CurrentLocation, Pause, RoutePoint, TrackingSession
from ridehub.shared.models.trip_dto import TripDTO, TripParticipant, TripSummary
from ridehub.shared.models.user_dto import UserSnapshot

__all__ = [
    "CamelModel",
    "ErrorResponse",
    "HealthStatus",
    "MessageType",
    "NotificationPriority",
    "NotificationType",
    "ParticipantStatus",
    "TrackingStatus",
    "TripStatus",
    "CurrentLocation",
    "Pause",
    "RoutePoint",
    "TrackingSession",
    "TripDTO",
    "TripParticipant",
    "TripSummary",
    "UserSnapshot",
]
