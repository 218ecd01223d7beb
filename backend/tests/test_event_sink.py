"""Tests for the signal event broadcaster."""

import orjson
import pytest

from app.services.event_sink import SignalBroadcaster
from core.protocols import EventSink


class TestSignalBroadcaster:
    @pytest.fixture
    def broadcaster(self):
        return SignalBroadcaster(queue_size=2)

    def test_is_event_sink(self, broadcaster):
        assert isinstance(broadcaster, EventSink)

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self, broadcaster):
        await broadcaster.publish({"type": "new_signals", "data": []})
        assert broadcaster.published == 1

    @pytest.mark.asyncio
    async def test_fan_out(self, broadcaster):
        first = await broadcaster.subscribe()
        second = await broadcaster.subscribe()

        await broadcaster.publish({"type": "new_signals", "data": [{"id": 1}]})

        for queue in (first, second):
            message = orjson.loads(queue.get_nowait())
            assert message["type"] == "new_signals"
            assert message["data"] == [{"id": 1}]
            assert "timestamp" in message

    @pytest.mark.asyncio
    async def test_full_subscriber_dropped(self, broadcaster):
        slow = await broadcaster.subscribe()
        fast = await broadcaster.subscribe()

        for i in range(3):
            await broadcaster.publish({"type": "status", "data": {"n": i}})
            fast.get_nowait()

        assert broadcaster.subscriber_count == 1
        assert slow.qsize() == 2

    @pytest.mark.asyncio
    async def test_unsubscribe(self, broadcaster):
        queue = await broadcaster.subscribe()
        await broadcaster.unsubscribe(queue)
        await broadcaster.unsubscribe(queue)

        await broadcaster.publish({"type": "status", "data": None})
        assert queue.empty()
        assert broadcaster.subscriber_count == 0
