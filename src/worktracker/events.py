"""In-process event bus delivering tracker notifications to subscribers.

Publishing never blocks the capture pipeline: each subscriber has a
bounded queue and, when a slow subscriber falls behind, its oldest
pending event is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from pydantic import TypeAdapter

from worktracker.domain.models import TrackerEvent

logger = logging.getLogger(__name__)

event_adapter: TypeAdapter[TrackerEvent] = TypeAdapter(TrackerEvent)


class EventBus:
    """Fan-out of tracker events to any number of async subscribers."""

    def __init__(self, max_pending: int = 256) -> None:
        self._max_pending = max_pending
        self._subscribers: set[asyncio.Queue] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: TrackerEvent) -> None:
        """Deliver an event to every current subscriber."""
        logger.debug("Event %s", event.event_type)
        for queue in list(self._subscribers):
            if queue.full():
                queue.get_nowait()
                logger.warning("Subscriber lagging, dropped oldest event")
            queue.put_nowait(event)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue]:
        """Register a subscriber queue for the duration of the context."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._max_pending)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)

    async def stream(self) -> AsyncIterator[TrackerEvent]:
        """Iterate over events as they are published."""
        async with self.subscribe() as queue:
            while True:
                yield await queue.get()


def encode_event(event: TrackerEvent) -> str:
    """Serialize an event to JSON."""
    return event_adapter.dump_json(event).decode("utf-8")
