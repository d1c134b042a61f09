from datetime import datetime
from typing import Any, Optional
from pydantic import Field
from ridehub.shared.models.common import CamelModel
from ridehub.shared.models.enums import MessageType, NotificationType, NotificationPriority

class MessageDTO(CamelModel):
    id: str
    trip_id: str
    sender_id: str
    content: str
    type: MessageType = MessageType.TEXT
    created_at: datetime

class CreateNotification(CamelModel):
    recipient_id: str
    sender_id: Optional[str] = None
    type: NotificationType = NotificationType.GENERAL
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    priority: NotificationPriority = NotificationPriority.MEDIUM

class NotificationDTO(CreateNotification):
    id: str
    status: str = "unread"
    read_at: Optional[datetime] = None
    created_at: datetime
