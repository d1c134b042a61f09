# tests/services/test_connection_registry.py
"""
Tests for ConnectionRegistry and Connection.
"""

from __future__ import annotations

import pytest

from conftest import ORGANIZER_ID, RIDER_ID


class TestConnection:
    """Connection.send."""

    @pytest.mark.asyncio
    async def test_send_wraps_event_and_counts(self, make_connection) -> None:
        connection = make_connection(RIDER_ID)

        await connection.send("connected", {"userId": RIDER_ID})

        assert connection.websocket.sent == [{"event": "connected", "data": {"userId": RIDER_ID}}]
        assert connection.messages_sent == 1

    @pytest.mark.asyncio
    async def test_failed_send_not_counted(self, make_connection) -> None:
        connection = make_connection(RIDER_ID, fail=True)

        with pytest.raises(RuntimeError):
            await connection.send("connected", {})
        assert connection.messages_sent == 0

    def test_ids_are_unique(self, make_connection) -> None:
        assert make_connection(RIDER_ID).connection_id != make_connection(RIDER_ID).connection_id


class TestConnectionRegistry:
    """register / unregister / presence."""

    def test_register_and_lookup(self, registry, make_connection) -> None:
        connection = make_connection(RIDER_ID)

        registry.register(RIDER_ID, connection, connection.user)

        info = registry.lookup(RIDER_ID)
        assert info.connection is connection
        assert info.user.name == "Ravi"
        assert registry.is_online(RIDER_ID)
        assert registry.active_connections == 1

    def test_unknown_user(self, registry) -> None:
        assert registry.lookup("ghost") is None
        assert not registry.is_online("ghost")

    def test_newest_connection_wins(self, registry, make_connection) -> None:
        old = make_connection(RIDER_ID)
        new = make_connection(RIDER_ID)

        registry.register(RIDER_ID, old, old.user)
        registry.register(RIDER_ID, new, new.user)

        assert registry.lookup(RIDER_ID).connection is new
        assert registry.active_connections == 1

    def test_unregister(self, registry, make_connection) -> None:
        connection = make_connection(RIDER_ID)
        registry.register(RIDER_ID, connection, connection.user)

        assert registry.unregister(RIDER_ID) is True
        assert not registry.is_online(RIDER_ID)

    def test_unregister_absent_is_noop(self, registry) -> None:
        assert registry.unregister("ghost") is False

    def test_stale_connection_cannot_evict_replacement(self, registry, make_connection) -> None:
        old = make_connection(RIDER_ID)
        new = make_connection(RIDER_ID)
        registry.register(RIDER_ID, old, old.user)
        registry.register(RIDER_ID, new, new.user)

        assert registry.unregister(RIDER_ID, old) is False
        assert registry.lookup(RIDER_ID).connection is new

        assert registry.unregister(RIDER_ID, new) is True
        assert not registry.is_online(RIDER_ID)

    def test_list_active_is_snapshot(self, registry, make_connection) -> None:
        rider = make_connection(RIDER_ID)
        registry.register(RIDER_ID, rider, rider.user)

        snapshot = registry.list_active()
        organizer = make_connection(ORGANIZER_ID)
        registry.register(ORGANIZER_ID, organizer, organizer.user)

        assert [i.user.id for i in snapshot] == [RIDER_ID]
        assert {i.user.id for i in registry.list_active()} == {RIDER_ID, ORGANIZER_ID}

    def test_touch_updates_last_seen(self, registry, make_connection) -> None:
        connection = make_connection(RIDER_ID)
        info = registry.register(RIDER_ID, connection, connection.user)
        before = info.last_seen

        registry.touch(RIDER_ID)
        registry.touch("ghost")

        assert registry.lookup(RIDER_ID).last_seen >= before

    @pytest.mark.asyncio
    async def test_stats_survive_disconnects(self, registry, make_connection) -> None:
        first = make_connection(RIDER_ID)
        registry.register(RIDER_ID, first, first.user)
        await first.send("connected", {})
        await first.send("pong", {})
        registry.unregister(RIDER_ID, first)

        second = make_connection(RIDER_ID)
        registry.register(RIDER_ID, second, second.user)
        await second.send("connected", {})

        assert registry.get_stats() == {
            "active_connections": 1,
            "total_connections_ever": 2,
            "total_messages_sent": 3,
        }
