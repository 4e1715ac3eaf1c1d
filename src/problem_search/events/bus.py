"""In-process pub/sub carrying problem lifecycle events."""
import asyncio
import uuid
from collections.abc import AsyncIterator
from typing import get_args

import structlog

from problem_search.events.types import DomainEvent, Topic

logger = structlog.get_logger()

WILDCARD = "*"
TOPICS: tuple[str, ...] = (*get_args(Topic), WILDCARD)

# Queue marker telling an iterator that the bus is closed
_CLOSED = object()


class EventBus:
    """Topic fan-out from the problem store to its subscribers.

    ``publish`` is synchronous so store mutations never wait on readers.
    Each subscriber owns a queue. Lossy subscribers (progress feeds and
    other observers) are capped at ``queue_size``; on overflow their oldest
    pending event is discarded and counted against them. Lossless
    subscribers, such as the index sync, receive every event.

    Attributes:
        queue_size: Maximum pending events per subscriber.
        max_subscribers: Maximum number of concurrent subscribers.
    """

    def __init__(
        self,
        queue_size: int = 1000,
        max_subscribers: int = 16,
    ) -> None:
        """Initialize event bus.

        Args:
            queue_size: Maximum pending events per subscriber.
            max_subscribers: Maximum concurrent subscribers allowed.
        """
        self.queue_size = queue_size
        self.max_subscribers = max_subscribers
        self._queues: dict[str, dict[str, asyncio.Queue[object]]] = {
            topic: {} for topic in TOPICS
        }
        self._lossless: set[str] = set()
        self._dropped: dict[str, int] = {}
        self._dropped_total = 0
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def subscriber_count(self) -> int:
        return sum(len(queues) for queues in self._queues.values())

    @property
    def dropped_events(self) -> int:
        """Events discarded across every subscriber since startup."""
        return self._dropped_total

    def dropped_for(self, subscriber_id: str) -> int:
        return self._dropped.get(subscriber_id, 0)

    def publish(self, event: DomainEvent) -> int:
        """Deliver an event to its topic's subscribers and the wildcard ones.

        Args:
            event: Lifecycle event to deliver.

        Returns:
            Number of subscriber queues the event was placed on.
        """
        if self._closed:
            logger.warning("event_after_close", event_id=event.id)
            return 0

        delivered = 0
        for topic in (event.topic, WILDCARD):
            for subscriber_id, queue in list(self._queues[topic].items()):
                if (
                    subscriber_id not in self._lossless
                    and queue.qsize() >= self.queue_size
                ):
                    queue.get_nowait()
                    self._dropped[subscriber_id] = self.dropped_for(subscriber_id) + 1
                    self._dropped_total += 1
                    logger.warning(
                        "event_dropped",
                        subscriber_id=subscriber_id,
                        topic=topic,
                        tenant_id=event.tenant_id,
                        doc_id=event.doc_id,
                    )
                queue.put_nowait(event)
                delivered += 1
        return delivered

    async def subscribe(
        self,
        topic: str = WILDCARD,
        lossless: bool = False,
    ) -> tuple[str, AsyncIterator[DomainEvent]]:
        """Register a subscriber.

        The returned iterator ends when the bus is closed and unregisters
        itself when the consumer stops iterating.

        Args:
            topic: Topic to follow, or "*" for every topic.
            lossless: Never discard events for this subscriber; its queue
                grows until the consumer catches up.

        Returns:
            Tuple of (subscriber_id, event_iterator).

        Raises:
            ValueError: If the topic is unknown, the subscriber limit is
                reached, or the bus is closed.
        """
        if topic not in self._queues:
            raise ValueError(f"Unknown topic: {topic!r}")

        async with self._lock:
            if self._closed:
                raise ValueError("Event bus is closed")
            if self.subscriber_count >= self.max_subscribers:
                raise ValueError("Maximum subscribers reached")
            subscriber_id = str(uuid.uuid4())
            # Unbounded so the close marker always fits; publish enforces queue_size
            queue: asyncio.Queue[object] = asyncio.Queue()
            self._queues[topic][subscriber_id] = queue
            if lossless:
                self._lossless.add(subscriber_id)

        async def event_iterator() -> AsyncIterator[DomainEvent]:
            try:
                while True:
                    item = await queue.get()
                    if item is _CLOSED:
                        return
                    yield item  # type: ignore[misc]
            finally:
                await self.unsubscribe(topic, subscriber_id)

        return subscriber_id, event_iterator()

    async def unsubscribe(self, topic: str, subscriber_id: str) -> None:
        """Remove a subscriber; unknown ids are ignored."""
        async with self._lock:
            removed = self._queues.get(topic, {}).pop(subscriber_id, None)
            dropped = self._dropped.pop(subscriber_id, 0)
            self._lossless.discard(subscriber_id)
        if removed is not None:
            logger.debug(
                "subscriber_removed",
                subscriber_id=subscriber_id,
                topic=topic,
                dropped=dropped,
            )

    def close(self) -> None:
        """Stop accepting events and end every subscriber iterator.

        Events already queued are still delivered before the iterator ends.
        """
        self._closed = True
        for queues in self._queues.values():
            for queue in queues.values():
                queue.put_nowait(_CLOSED)
