"""Event broadcaster: fans signal events out to in-process subscribers."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from pydantic import BaseModel

logger = logging.getLogger(__name__)


def _orjson_dumps(obj: Any) -> str:
    """Serialize object to JSON string using orjson."""
    return orjson.dumps(obj, default=str).decode("utf-8")


class EventMessage(BaseModel):
    """Broadcast message format."""

    type: str  # "new_signals", "trade_closed", "status"
    data: Any
    timestamp: datetime

    def to_json(self) -> str:
        return _orjson_dumps(self.model_dump())


class SignalBroadcaster:
    """
    Publish events to any number of subscriber queues.

    Each subscriber gets its own bounded queue of serialized messages.
    A subscriber whose queue is full is dropped; publishing never waits
    on a consumer.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscribers: list[asyncio.Queue[str]] = []
        self._lock = asyncio.Lock()
        self.published = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self) -> asyncio.Queue[str]:
        """Register a new subscriber and return its queue."""
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self.queue_size)
        async with self._lock:
            self._subscribers.append(queue)
        logger.info(f"Subscriber added. Total subscribers: {len(self._subscribers)}")
        return queue

    async def unsubscribe(self, queue: asyncio.Queue[str]) -> None:
        async with self._lock:
            if queue in self._subscribers:
                self._subscribers.remove(queue)
        logger.info(f"Subscriber removed. Total subscribers: {len(self._subscribers)}")

    async def publish(self, event: dict[str, Any]) -> None:
        """Broadcast an event of the form ``{"type": ..., "data": ...}``."""
        message = EventMessage(
            type=event["type"],
            data=event.get("data"),
            timestamp=datetime.now(timezone.utc),
        )
        self.published += 1
        if not self._subscribers:
            return

        message_text = message.to_json()
        dropped = []

        async with self._lock:
            for queue in self._subscribers:
                try:
                    queue.put_nowait(message_text)
                except asyncio.QueueFull:
                    dropped.append(queue)

            for queue in dropped:
                self._subscribers.remove(queue)

        if dropped:
            logger.warning(f"Dropped {len(dropped)} slow subscriber(s)")
