from enum import Enum

class TrackingStatus(str, Enum):
    """Tracking session statuses."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (TrackingStatus.COMPLETED, TrackingStatus.CANCELLED)

class TripStatus(str, Enum):
    """Trip statuses."""
    PLANNING = "planning"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

class ParticipantStatus(str, Enum):
    """Trip participation request statuses."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value

class MessageType(str, Enum):
    """Chat message types."""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    LOCATION = "location"
    SYSTEM = "system"

    def __str__(self) -> str:
        return self.value

class NotificationType(str, Enum):
    """Notification types."""
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    TRIP_INVITE = "trip_invite"
    TRIP_UPDATE = "trip_update"
    POST_LIKE = "post_like"
    POST_COMMENT = "post_comment"
    TRIP_STARTED = "trip_started"
    TRIP_COMPLETED = "trip_completed"
    EMERGENCY_ALERT = "emergency_alert"
    NEARBY_RIDER = "nearby_rider"
    ACHIEVEMENT_UNLOCKED = "achievement_unlocked"
    SYSTEM_UPDATE = "system_update"
    MAINTENANCE_REMINDER = "maintenance_reminder"
    WEATHER_ALERT = "weather_alert"
    GENERAL = "general"

    def __str__(self) -> str:
        return self.value

class NotificationPriority(str, Enum):
    """Notification priorities."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    def __str__(self) -> str:
        return self.value
