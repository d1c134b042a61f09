from datetime import datetime
from typing import Optional
from ridehub.shared.models.common import CamelModel

class UserSnapshot(CamelModel):
    """Public identity attached to connections and real-time payloads."""
    id: str
    name: str
    avatar: Optional[str] = None

    def to_event_user(self) -> dict:
        return {"_id": self.id, "name": self.name, "avatar": self.avatar}

class UserDTO(UserSnapshot):
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
