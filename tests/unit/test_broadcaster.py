"""Tests for the change broadcaster and the server-sent event stream."""

from __future__ import annotations

import json

import pytest

from agentboard.api.broadcaster import Broadcaster
from agentboard.api.routes.stream import event_stream


class _FakeRequest:
    """Stands in for a Starlette request; only disconnect polling is used."""

    def __init__(self) -> None:
        self.disconnected = False

    async def is_disconnected(self) -> bool:
        return self.disconnected


class TestBroadcaster:
    @pytest.mark.asyncio
    async def test_notify_reaches_every_subscriber(self):
        broadcaster = Broadcaster()
        first = broadcaster.subscribe()
        second = broadcaster.subscribe()
        broadcaster.notify()
        for subscriber in (first, second):
            message = json.loads(await subscriber.next())
            assert message["event"] == "changed"
            assert set(message) == {"event", "timestamp"}

    def test_stalled_subscriber_is_pruned(self):
        broadcaster = Broadcaster(queue_size=2)
        subscriber = broadcaster.subscribe()
        broadcaster.notify()
        broadcaster.notify()
        assert broadcaster.active_connections == 1
        broadcaster.notify()
        assert broadcaster.active_connections == 0
        assert subscriber.closed

    def test_unsubscribe_is_idempotent(self):
        broadcaster = Broadcaster()
        subscriber = broadcaster.subscribe()
        broadcaster.unsubscribe(subscriber)
        broadcaster.unsubscribe(subscriber)
        assert broadcaster.active_connections == 0


class TestEventStream:
    @pytest.mark.asyncio
    async def test_hello_changes_and_keepalive(self):
        broadcaster = Broadcaster()
        stream = event_stream(_FakeRequest(), broadcaster, keepalive=0.05)

        assert (await stream.__anext__()).startswith("event: hello")
        assert broadcaster.active_connections == 1

        broadcaster.notify()
        frame = await stream.__anext__()
        assert frame.startswith("event: changed\ndata: ")
        assert frame.endswith("\n\n")

        assert await stream.__anext__() == ": keep-alive\n\n"

        await stream.aclose()
        assert broadcaster.active_connections == 0

    @pytest.mark.asyncio
    async def test_disconnect_ends_stream(self):
        broadcaster = Broadcaster()
        request = _FakeRequest()
        stream = event_stream(request, broadcaster, keepalive=0.05)
        await stream.__anext__()
        request.disconnected = True
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert broadcaster.active_connections == 0

    @pytest.mark.asyncio
    async def test_pruned_subscriber_ends_stream(self):
        broadcaster = Broadcaster(queue_size=1)
        stream = event_stream(_FakeRequest(), broadcaster, keepalive=0.05)
        await stream.__anext__()

        broadcaster.notify()
        broadcaster.notify()
        assert broadcaster.active_connections == 0

        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
