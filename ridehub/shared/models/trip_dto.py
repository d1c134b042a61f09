from datetime import datetime
from typing import Any, Optional, List
from pydantic import Field
from ridehub.shared.models.common import CamelModel
from ridehub.shared.models.enums import TripStatus, ParticipantStatus

class TripLocation(CamelModel):
    name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

class TripParticipant(CamelModel):
    user_id: str
    status: ParticipantStatus = ParticipantStatus.PENDING

class TripDTO(CamelModel):
    id: str
    organizer_id: str
    title: str
    start_location: Optional[TripLocation] = None
    end_location: Optional[TripLocation] = None
    status: TripStatus = TripStatus.PLANNING

    participants: List[TripParticipant] = Field(default_factory=list)
    tracking_sessions: List[str] = Field(default_factory=list)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    stats: Optional[dict[str, Any]] = None

    def is_member(self, user_id: str) -> bool:
        """Organizer or approved participant."""
        if self.organizer_id == user_id:
            return True
        return any(
            p.user_id == user_id and p.status == ParticipantStatus.APPROVED
            for p in self.participants
        )

    def participant_ids(self) -> List[str]:
        """Every participant, any status, without duplicates."""
        seen: List[str] = []
        for p in self.participants:
            if p.user_id not in seen:
                seen.append(p.user_id)
        return seen

class TripSummary(CamelModel):
    id: str
    title: str
    start_location: Optional[TripLocation] = None
    end_location: Optional[TripLocation] = None
