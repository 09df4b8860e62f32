"""Record event bus: in-process broadcaster for committed saves and deletes."""

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from hybridstore.domain.entities import RecordEvent

logger = logging.getLogger(__name__)


def format_sse(event: RecordEvent) -> str:
    """Render an event as a Server-Sent Events message."""
    return f"event: {event.event_type.value}\ndata: {json.dumps(event.to_dict())}\n\n"


class RecordEventBus:
    """Fans record events out to every subscriber.

    Each subscriber gets a bounded asyncio.Queue. Delivery is at-most-once:
    when a subscriber's queue is full the event is dropped for that
    subscriber only, and publishers never block.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._queues: list[asyncio.Queue[RecordEvent | None]] = []

    async def subscribe(self) -> AsyncGenerator[RecordEvent, None]:
        """Yield events until the bus shuts down or the consumer stops."""
        queue: asyncio.Queue[RecordEvent | None] = asyncio.Queue(maxsize=self._queue_size)
        self._queues.append(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            if queue in self._queues:
                self._queues.remove(queue)

    def publish(self, event: RecordEvent) -> int:
        """Queue ``event`` for every subscriber; returns how many received it."""
        delivered = 0
        for queue in self._queues:
            try:
                queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning("Event subscriber queue full: dropping %s", event.event_type.value)
        return delivered

    async def shutdown(self) -> None:
        """Disconnect all subscribers."""
        for queue in self._queues:
            while queue.full():
                queue.get_nowait()
            queue.put_nowait(None)
        self._queues.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)
