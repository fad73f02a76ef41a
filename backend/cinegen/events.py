"""In-process publish/subscribe relay for pipeline progress events."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

EVENT_STAGE_CHANGED = "stage_changed"
EVENT_CHAPTER_WRITTEN = "chapter_written"
EVENT_SCENE_STARTED = "scene_started"
EVENT_SCENE_FINISHED = "scene_finished"
EVENT_CHAPTER_FINISHED = "chapter_finished"
EVENT_RUN_FINISHED = "run_finished"

HEARTBEAT_FRAME = ": heartbeat\n\n"


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    type: str
    film_id: str
    data: dict[str, Any] = field(default_factory=dict)
    emitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "film_id": self.film_id,
            "data": self.data,
            "emitted_at": self.emitted_at.isoformat(),
        }


def format_sse(event: PipelineEvent) -> str:
    """Render one event as a server-sent events frame."""
    return f"data: {json.dumps(event.to_payload())}\n\n"


class Subscription:
    """Async iterator over events delivered to one subscriber queue."""

    def __init__(self, queue: asyncio.Queue[PipelineEvent]) -> None:
        self._queue = queue

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> PipelineEvent:
        return await self._queue.get()

    async def next_event(self, timeout: float) -> PipelineEvent | None:
        """Wait up to `timeout` seconds for an event, returning None on timeout."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None


class EventRelay:
    """Fan pipeline events out to subscribers keyed by film id.

    Delivery is at-most-once: publishing never blocks, and events for a
    subscriber whose queue is full are dropped. There is no replay.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = max(1, queue_size)
        self._subscribers: dict[str, set[asyncio.Queue[PipelineEvent]]] = {}

    def subscriber_count(self, film_id: str) -> int:
        return len(self._subscribers.get(film_id, ()))

    def publish(self, film_id: str, event: PipelineEvent) -> int:
        """Deliver an event to every current subscriber. Returns the delivered count."""
        delivered = 0
        for queue in list(self._subscribers.get(film_id, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("events.dropped film_id=%s type=%s", film_id, event.type)
                continue
            delivered += 1
        return delivered

    def emit(self, film_id: str, event_type: str, **data: Any) -> PipelineEvent:
        event = PipelineEvent(type=event_type, film_id=film_id, data=data)
        self.publish(film_id, event)
        return event

    @asynccontextmanager
    async def subscribe(self, film_id: str) -> AsyncIterator[Subscription]:
        queue: asyncio.Queue[PipelineEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(film_id, set()).add(queue)
        try:
            yield Subscription(queue)
        finally:
            subscribers = self._subscribers.get(film_id)
            if subscribers is not None:
                subscribers.discard(queue)
                if not subscribers:
                    self._subscribers.pop(film_id, None)
