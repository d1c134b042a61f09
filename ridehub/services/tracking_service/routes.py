from typing import Optional

from fastapi import APIRouter, Depends, status

from ridehub.services.auth.dependencies import get_current_user_id
from ridehub.services.tracking_service.dependencies import get_tracking_service
from ridehub.services.tracking_service.service import TrackingService
from ridehub.shared.models.tracking_dto import (
    EndTrackingRequest,
    IngestPointRequest,
    LiveSessionView,
    LiveTrackingResponse,
    LocationUpdateRequest,
    PauseRequest,
    PauseResponse,
    PointIngestedResponse,
    ResumeResponse,
    StartTrackingRequest,
    StartTrackingResponse,
    StopTrackingRequest,
    StopTrackingResponse,
    TrackingSession,
    TrackingSessionDetail,
)

router = APIRouter(
    prefix="/tracking",
    tags=["Tracking"],
    dependencies=[Depends(get_current_user_id)],
)


def _point_response(session: TrackingSession) -> PointIngestedResponse:
    return PointIngestedResponse(
        current_location=session.current_location,
        total_distance=session.total_distance,
        average_speed=session.average_speed,
        max_speed=session.max_speed,
        route_points_count=len(session.route_points),
    )


@router.post(
    "/start",
    response_model=StartTrackingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_tracking(
    request: StartTrackingRequest,
    user_id: str = Depends(get_current_user_id),
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.start(request.trip_id, user_id, request.started_at)
    return StartTrackingResponse(session_id=session.session_id, session=session)


@router.post("/point", response_model=PointIngestedResponse)
async def ingest_point(
    request: IngestPointRequest,
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.ingest_point(
        request.session_id,
        request.lat,
        request.lng,
        timestamp=request.timestamp,
        speed=request.speed,
        altitude=request.altitude,
        accuracy=request.accuracy,
    )
    return _point_response(session)


@router.post("/stop", response_model=StopTrackingResponse)
async def stop_tracking(
    request: StopTrackingRequest,
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.stop(request.session_id, request.ended_at)
    return StopTrackingResponse(session=session)


@router.get("/trips/{trip_id}/live", response_model=LiveTrackingResponse)
async def get_live_sessions(
    trip_id: str,
    service: TrackingService = Depends(get_tracking_service),
):
    sessions = await service.list_live(trip_id)
    return LiveTrackingResponse(
        trip_id=trip_id,
        sessions=[LiveSessionView.model_validate(s.model_dump()) for s in sessions],
    )


@router.get("/{session_id}", response_model=TrackingSessionDetail)
async def get_tracking_session(
    session_id: str,
    service: TrackingService = Depends(get_tracking_service),
):
    return await service.get_detail(session_id)


@router.post("/{session_id}/pause", response_model=PauseResponse)
async def pause_tracking(
    session_id: str,
    request: Optional[PauseRequest] = None,
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.pause(session_id, request.reason if request else None)
    return PauseResponse(status=session.status, pause_count=len(session.pauses))


@router.post("/{session_id}/resume", response_model=ResumeResponse)
async def resume_tracking(
    session_id: str,
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.resume(session_id)
    return ResumeResponse(status=session.status, total_pause_time=session.total_pause_time)


# Legacy path-parameter variants kept for older mobile clients

@router.post("/{session_id}/location", response_model=PointIngestedResponse)
async def update_location(
    session_id: str,
    request: LocationUpdateRequest,
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.ingest_point(
        session_id,
        request.lat,
        request.lng,
        timestamp=request.timestamp,
        speed=request.speed,
        altitude=request.altitude,
        accuracy=request.accuracy,
    )
    return _point_response(session)


@router.post("/{session_id}/end", response_model=StopTrackingResponse)
async def end_tracking(
    session_id: str,
    request: Optional[EndTrackingRequest] = None,
    service: TrackingService = Depends(get_tracking_service),
):
    session = await service.stop(session_id, request.ended_at if request else None)
    return StopTrackingResponse(session=session)
