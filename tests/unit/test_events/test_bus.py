"""Tests for the in-process event bus."""

from __future__ import annotations

import asyncio
import json

import pytest

from worktracker.domain.models import PipelineError, SessionStatus, StateChanged
from worktracker.events import EventBus, encode_event


def _error(n: int) -> PipelineError:
    return PipelineError(source="test", message=str(n))


class TestEventBus:
    def test_publish_without_subscribers(self) -> None:
        EventBus().publish(_error(0))

    @pytest.mark.asyncio
    async def test_fan_out(self) -> None:
        bus = EventBus()
        async with bus.subscribe() as first, bus.subscribe() as second:
            assert bus.subscriber_count == 2
            bus.publish(_error(1))
            assert first.get_nowait() == second.get_nowait() == _error(1)
        assert bus.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_slow_subscriber_drops_oldest(self) -> None:
        bus = EventBus(max_pending=2)
        async with bus.subscribe() as queue:
            for n in range(3):
                bus.publish(_error(n))
            assert [queue.get_nowait().message for _ in range(2)] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_stream(self) -> None:
        bus = EventBus()
        received = []

        async def consume() -> None:
            async for event in bus.stream():
                received.append(event)
                if len(received) == 2:
                    return

        task = asyncio.create_task(consume())
        await asyncio.sleep(0)
        bus.publish(_error(1))
        bus.publish(StateChanged(session_id="s1", status=SessionStatus.ACTIVE))
        await asyncio.wait_for(task, 1.0)
        assert [e.event_type for e in received] == ["error", "state_changed"]


def test_encode_event() -> None:
    payload = json.loads(encode_event(StateChanged(session_id="s1", status=SessionStatus.PAUSED)))
    assert payload == {"event_type": "state_changed", "session_id": "s1", "status": "paused"}
