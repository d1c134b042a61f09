# ridehub/app.py
"""
FastAPI application: tracking HTTP API and the real-time WebSocket gateway.

HTTP (under API_PREFIX):
- /tracking/...: tracking session lifecycle and live views
- /realtime/...: presence and connection stats

WebSocket:
- WS_PATH: authenticated event channel

GET /health reports service and database health.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ridehub.common.constants import SERVICE_NAME, TypeMsg
from ridehub.common.error_handlers import register_exception_handlers
from ridehub.common.logger import log_info, setup_logging
from ridehub.config import settings
from ridehub.core.messages.repository import MessageRepository
from ridehub.core.notifications.repository import NotificationRepository
from ridehub.core.trips.repository import TripRepository
from ridehub.core.users.repository import UserRepository
from ridehub.infra.database import DatabaseManager, close_db, get_db, init_db
from ridehub.services.realtime_ws.connection_manager import ConnectionRegistry
from ridehub.services.realtime_ws.handlers import RealtimeEventHandlers
from ridehub.services.realtime_ws.rooms import RoomBroadcaster
from ridehub.services.realtime_ws.routes import router as realtime_router
from ridehub.services.realtime_ws.routes import ws_router
from ridehub.services.tracking_service.repository import TrackingSessionRepository
from ridehub.services.tracking_service.routes import router as tracking_router
from ridehub.services.tracking_service.service import TrackingService
from ridehub.shared.models.common import HealthStatus


def wire_state(app: FastAPI, db: DatabaseManager) -> None:
    """Builds the repositories, services and real-time singletons onto app.state."""
    trips = TripRepository(db)
    users = UserRepository(db)

    registry = ConnectionRegistry()
    broadcaster = RoomBroadcaster(registry)

    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.tracking_service = TrackingService(TrackingSessionRepository(db), trips, users)
    app.state.realtime_handlers = RealtimeEventHandlers(
        registry,
        broadcaster,
        trips,
        users,
        MessageRepository(db),
        NotificationRepository(db),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    await log_info(f"Starting {settings.system.PROJECT_NAME} {settings.system.VERSION}...", type_msg=TypeMsg.INFO)
    db = await init_db()
    wire_state(app, db)

    yield

    # Shutdown
    await log_info(f"Shutting down {settings.system.PROJECT_NAME}...", type_msg=TypeMsg.INFO)
    await close_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title="RideHub Tracking & Realtime",
        description="Live ride tracking sessions and the real-time chat / location / trip event gateway.",
        version=settings.system.VERSION,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(tracking_router, prefix=settings.server.API_PREFIX)
    app.include_router(realtime_router, prefix=settings.server.API_PREFIX)
    app.include_router(ws_router)

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check() -> HealthStatus:
        db = get_db()
        db_ok = db.is_connected and await db.health_check()
        return HealthStatus(
            service=SERVICE_NAME,
            status="healthy" if db_ok else "degraded",
            version=settings.system.VERSION,
            dependencies={"postgres": "ok" if db_ok else "unavailable"},
        )

    return app


app = create_app()
