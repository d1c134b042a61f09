# tests/services/test_realtime_ws.py
"""
End-to-end tests for the WebSocket gateway and the presence / stats endpoints.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import OUTSIDER_ID, RIDER_ID, TRIP_ID
from ridehub.app import create_app
from ridehub.services.auth.jwt import create_access_token


@pytest.fixture
def app(tracking_service, registry, broadcaster, realtime_handlers) -> FastAPI:
    application = create_app()
    application.state.tracking_service = tracking_service
    application.state.registry = registry
    application.state.broadcaster = broadcaster
    application.state.realtime_handlers = realtime_handlers
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    # Not entered as a context manager: the lifespan (and the database) stays off
    return TestClient(app)


class TestHandshake:
    """Token checks before accept."""

    def test_missing_token_closes_with_policy_violation(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws"):
                pass
        assert exc.value.code == 1008

    def test_invalid_token(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws?token=not-a-jwt"):
                pass
        assert exc.value.code == 1008

    def test_unknown_user(self, client) -> None:
        token = create_access_token("ghost")
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect(f"/ws?token={token}"):
                pass
        assert exc.value.code == 1008

    def test_bearer_header(self, client) -> None:
        headers = {"Authorization": f"Bearer {create_access_token(RIDER_ID)}"}
        with client.websocket_connect("/ws", headers=headers) as ws:
            assert ws.receive_json()["event"] == "connected"


class TestSession:
    """Connected socket round trips."""

    def test_connect_join_and_disconnect(self, client, registry, broadcaster) -> None:
        token = create_access_token(RIDER_ID)

        with client.websocket_connect(f"/ws?token={token}") as ws:
            greeting = ws.receive_json()
            assert greeting["event"] == "connected"
            assert greeting["data"]["userId"] == RIDER_ID
            assert registry.is_online(RIDER_ID)

            ws.send_json({"event": "join_trip_chat", "data": {"tripId": TRIP_ID}})
            reply = ws.receive_json()
            assert reply == {
                "event": "joined_trip_chat",
                "data": {"tripId": TRIP_ID, "message": "Joined trip chat successfully"},
            }

        assert not registry.is_online(RIDER_ID)
        assert broadcaster.get_stats()["total_rooms"] == 0

    def test_errors_keep_connection_open(self, client) -> None:
        token = create_access_token(OUTSIDER_ID)

        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()

            ws.send_text("not json")
            assert ws.receive_json()["event"] == "error"

            ws.send_json({"event": "join_trip_chat", "data": {"tripId": TRIP_ID}})
            assert ws.receive_json() == {"event": "error", "data": {"message": "Not authorized to join this chat"}}

    def test_binary_frames(self, client) -> None:
        token = create_access_token(RIDER_ID)

        with client.websocket_connect(f"/ws?token={token}") as ws:
            ws.receive_json()

            ws.send_bytes(b"not json")
            assert ws.receive_json()["event"] == "error"

            ws.send_bytes(b'{"event": "join_trip_chat", "data": {"tripId": "trip-1"}}')
            assert ws.receive_json()["event"] == "joined_trip_chat"

    def test_chat_between_two_sockets(self, client) -> None:
        rider_token = create_access_token(RIDER_ID)
        organizer_token = create_access_token("org-1")

        with client.websocket_connect(f"/ws?token={rider_token}") as rider, \
                client.websocket_connect(f"/ws?token={organizer_token}") as organizer:
            rider.receive_json()
            organizer.receive_json()

            rider.send_json({"event": "join_trip_chat", "data": {"tripId": TRIP_ID}})
            rider.receive_json()
            organizer.send_json({"event": "join_trip_chat", "data": {"tripId": TRIP_ID}})
            organizer.receive_json()
            assert rider.receive_json()["event"] == "user_joined_chat"

            organizer.send_json({"event": "send_message", "data": {"tripId": TRIP_ID, "content": "Rolling out"}})

            for ws in (organizer, rider):
                message = ws.receive_json()
                assert message["event"] == "new_message"
                assert message["data"]["content"] == "Rolling out"


class TestRealtimeEndpoints:
    """GET /realtime/stats and /realtime/online/{user_id}."""

    def test_requires_token(self, client) -> None:
        assert client.get("/api/v1/realtime/stats").status_code == 401

    def test_stats_and_presence(self, client) -> None:
        headers = {"Authorization": f"Bearer {create_access_token(RIDER_ID)}"}

        with client.websocket_connect(f"/ws?token={create_access_token(RIDER_ID)}") as ws:
            ws.receive_json()

            stats = client.get("/api/v1/realtime/stats", headers=headers).json()
            online = client.get(f"/api/v1/realtime/online/{RIDER_ID}", headers=headers).json()
            offline = client.get(f"/api/v1/realtime/online/{OUTSIDER_ID}", headers=headers).json()

        assert stats["active_connections"] == 1
        assert stats["total_connections_ever"] == 1
        assert stats["total_messages_sent"] == 1
        assert online == {"user_id": RIDER_ID, "online": True}
        assert offline == {"user_id": OUTSIDER_ID, "online": False}
