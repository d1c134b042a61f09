from fastapi import Request

from ridehub.core.trips.repository import TripRepository
from ridehub.core.users.repository import UserRepository
from ridehub.infra.database import DatabaseManager
from ridehub.services.tracking_service.repository import TrackingSessionRepository
from ridehub.services.tracking_service.service import TrackingService


def get_tracking_repository(request: Request) -> TrackingSessionRepository:
    return TrackingSessionRepository(DatabaseManager())


def get_tracking_service(request: Request) -> TrackingService:
    service = getattr(request.app.state, "tracking_service", None)
    if service is not None:
        return service

    db = DatabaseManager()
    return TrackingService(
        get_tracking_repository(request),
        TripRepository(db),
        UserRepository(db),
    )
