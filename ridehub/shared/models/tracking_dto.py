from datetime import datetime
from typing import Optional, List
from pydantic import Field, field_validator
from ridehub.shared.models.common import CamelModel, UtcDatetime
from ridehub.shared.models.enums import TrackingStatus
from ridehub.shared.models.trip_dto import TripSummary
from ridehub.shared.models.user_dto import UserSnapshot

class RoutePoint(CamelModel):
    lat: float
    lng: float
    timestamp: datetime
    speed: Optional[float] = None
    altitude: Optional[float] = None
    accuracy: Optional[float] = None

class CurrentLocation(CamelModel):
    """Copy of the last route point; the route itself is authoritative."""
    lat: float
    lng: float
    accuracy: Optional[float] = None
    timestamp: datetime

class Pause(CamelModel):
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    reason: str

    @property
    def is_open(self) -> bool:
        return self.end_time is None

class Alert(CamelModel):
    type: str
    message: str
    timestamp: datetime

class TrackingSession(CamelModel):
    session_id: str
    trip_id: str
    rider_id: str
    status: TrackingStatus = TrackingStatus.ACTIVE

    started_at: datetime
    ended_at: Optional[datetime] = None

    route_points: List[RoutePoint] = Field(default_factory=list)
    current_location: Optional[CurrentLocation] = None

    total_distance: float = 0.0
    total_duration: int = 0
    average_speed: float = 0.0
    max_speed: float = 0.0

    pauses: List[Pause] = Field(default_factory=list)
    total_pause_time: int = 0
    alerts: List[Alert] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def open_pause(self) -> Optional[Pause]:
        for pause in reversed(self.pauses):
            if pause.is_open:
                return pause
        return None

# === HTTP requests ===

class _PointFields(CamelModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    timestamp: Optional[UtcDatetime] = None
    speed: Optional[float] = Field(None, ge=0)
    altitude: Optional[float] = None
    accuracy: Optional[float] = Field(None, ge=0)

class StartTrackingRequest(CamelModel):
    trip_id: str = Field(..., min_length=1)
    started_at: Optional[UtcDatetime] = None

class IngestPointRequest(_PointFields):
    session_id: str = Field(..., min_length=1)

class LocationUpdateRequest(_PointFields):
    pass

class PauseRequest(CamelModel):
    reason: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

class StopTrackingRequest(CamelModel):
    session_id: str = Field(..., min_length=1)
    ended_at: Optional[UtcDatetime] = None

class EndTrackingRequest(CamelModel):
    ended_at: Optional[UtcDatetime] = None

# === HTTP responses ===

class StartTrackingResponse(CamelModel):
    session_id: str
    session: TrackingSession

class PointIngestedResponse(CamelModel):
    current_location: CurrentLocation
    total_distance: float
    average_speed: float
    max_speed: float
    route_points_count: int

class PauseResponse(CamelModel):
    status: TrackingStatus
    pause_count: int

class ResumeResponse(CamelModel):
    status: TrackingStatus
    total_pause_time: int

class StopTrackingResponse(CamelModel):
    session: TrackingSession

class TrackingSessionDetail(TrackingSession):
    trip: Optional[TripSummary] = None
    rider: Optional[UserSnapshot] = None

class LiveSessionView(CamelModel):
    session_id: str
    rider_id: str
    status: TrackingStatus
    current_location: Optional[CurrentLocation] = None
    total_distance: float
    average_speed: float
    max_speed: float
    started_at: datetime

class LiveTrackingResponse(CamelModel):
    trip_id: str
    sessions: List[LiveSessionView] = Field(default_factory=list)
