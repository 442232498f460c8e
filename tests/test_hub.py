"""Tests for teamwatch.hub — fan-out to observers."""

import asyncio
import json

from fastapi.websockets import WebSocketState

from teamwatch.hub import BroadcastHub


class FakeObserver:
    """Stands in for a WebSocket: records what it is sent."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.received: list[dict] = []

    async def send_text(self, message: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.received.append(json.loads(message))


class TestBroadcast:
    def test_disconnected_observer_pruned(self):
        hub = BroadcastHub()
        first, second, third = FakeObserver(), FakeObserver(), FakeObserver()
        second.client_state = WebSocketState.DISCONNECTED
        for conn in (first, second, third):
            hub.add(conn)

        delivered = asyncio.run(hub.broadcast({"type": "teams_update", "data": []}))

        assert delivered == 2
        assert first.received == [{"type": "teams_update", "data": []}]
        assert third.received == [{"type": "teams_update", "data": []}]
        assert second.received == []
        assert second not in hub
        assert len(hub) == 2

    def test_failing_send_pruned(self):
        hub = BroadcastHub()
        good, bad = FakeObserver(), FakeObserver(fail=True)
        hub.add(good)
        hub.add(bad)

        assert asyncio.run(hub.broadcast({"type": "x"})) == 1
        assert bad not in hub
        assert good in hub

    def test_no_observers(self):
        assert asyncio.run(BroadcastHub().broadcast({"type": "x"})) == 0

    def test_send_single(self):
        hub = BroadcastHub()
        good, bad = FakeObserver(), FakeObserver(fail=True)
        hub.add(good)
        hub.add(bad)

        assert asyncio.run(hub.send(good, {"type": "initial_data"})) is True
        assert asyncio.run(hub.send(bad, {"type": "initial_data"})) is False
        assert good.received == [{"type": "initial_data"}]
        assert bad not in hub

    def test_discard_unknown_is_noop(self):
        hub = BroadcastHub()
        hub.discard(FakeObserver())
        assert len(hub) == 0
