"""Server-Sent Events fan-out to connected browsers.

Each open ``/__reload`` connection is a subscriber with its own bounded
queue of text chunks. Broadcasting only enqueues, so a slow client never
holds up the others; a client whose queue fills up is dropped.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

# Chunks buffered per subscriber before it is considered stalled
DEFAULT_QUEUE_SIZE = 100

# Sent right after subscribing so the browser sees an open stream
INITIAL_CHUNK = "\n"


class SubscriberClosed(Exception):
    """Raised when sending to a subscriber whose stream has ended."""


def format_event(payload: str) -> str:
    """Frame a payload as one SSE event.

    Every line of the payload gets its own ``data:`` field so that
    embedded newlines cannot end the event early.
    """
    lines = payload.splitlines() or [""]
    return "".join(f"data: {line}\n" for line in lines) + "\n"


class Subscriber:
    """One open push-notification connection."""

    def __init__(self, subscriber_id: int, max_queue: int = DEFAULT_QUEUE_SIZE) -> None:
        self.id = subscriber_id
        self._queue: asyncio.Queue[str | None] = asyncio.Queue(maxsize=max_queue + 1)
        self._max_queue = max_queue
        self.closed = False

    def send(self, chunk: str) -> None:
        """Queue a chunk for delivery.

        Raises:
            SubscriberClosed: The stream already ended
            asyncio.QueueFull: The client stopped reading
        """
        if self.closed:
            raise SubscriberClosed(f"subscriber {self.id} is closed")
        if self._queue.qsize() >= self._max_queue:
            raise asyncio.QueueFull
        self._queue.put_nowait(chunk)

    def close(self) -> None:
        """End the stream; the reader stops after draining queued chunks."""
        if self.closed:
            return
        self.closed = True
        # One slot is reserved for the sentinel
        self._queue.put_nowait(None)

    async def next_chunk(self) -> str | None:
        """Wait for the next chunk, or None once closed."""
        return await self._queue.get()


class NotificationHub:
    """Registry of open subscribers with broadcast.

    All methods run on the event loop thread. Registry changes contain no
    await, so a broadcast always sees a consistent snapshot.
    """

    def __init__(self, max_queue: int = DEFAULT_QUEUE_SIZE) -> None:
        """Initialize the hub.

        Args:
            max_queue: Undelivered chunks allowed per subscriber
        """
        self._subscribers: dict[int, Subscriber] = {}
        self._ids = itertools.count()
        self._max_queue = max_queue

    def subscribe(self) -> int:
        """Register a new subscriber and return its id."""
        subscriber = Subscriber(next(self._ids), max_queue=self._max_queue)
        self._subscribers[subscriber.id] = subscriber
        logger.debug(f"Subscriber {subscriber.id} connected, total: {len(self._subscribers)}")
        return subscriber.id

    def unsubscribe(self, subscriber_id: int) -> None:
        """Remove a subscriber. Unknown ids are ignored."""
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return
        subscriber.close()
        logger.debug(f"Subscriber {subscriber_id} disconnected, total: {len(self._subscribers)}")

    def broadcast(self, payload: str) -> int:
        """Send a payload to every current subscriber.

        Delivery failures drop the failing subscriber and are never raised.

        Args:
            payload: Event data, normally the changed file path

        Returns:
            Number of subscribers the event was queued for
        """
        chunk = format_event(payload)
        delivered = 0

        # Copy to avoid modification during iteration
        for subscriber_id, subscriber in list(self._subscribers.items()):
            if subscriber_id not in self._subscribers:
                continue
            try:
                subscriber.send(chunk)
            except Exception as e:
                logger.warning(f"Dropping subscriber {subscriber_id}: {type(e).__name__} {e}")
                self.unsubscribe(subscriber_id)
            else:
                delivered += 1

        logger.debug(f"Broadcast {payload!r} to {delivered} subscriber(s)")
        return delivered

    async def stream(self) -> AsyncIterator[str]:
        """Yield the text chunks for one response body.

        The subscriber is registered when iteration starts and removed when
        the generator ends, is cancelled (client disconnect) or is closed.
        A body that is never iterated never registers.
        """
        subscriber_id = self.subscribe()
        subscriber = self._subscribers[subscriber_id]
        try:
            yield INITIAL_CHUNK
            while True:
                chunk = await subscriber.next_chunk()
                if chunk is None:
                    break
                yield chunk
        finally:
            self.unsubscribe(subscriber_id)

    def close(self) -> None:
        """End every open stream (server shutdown)."""
        for subscriber_id in list(self._subscribers):
            self.unsubscribe(subscriber_id)

    def __contains__(self, subscriber_id: object) -> bool:
        return subscriber_id in self._subscribers

    @property
    def subscriber_ids(self) -> list[int]:
        """Ids of open subscribers, oldest first."""
        return list(self._subscribers)

    @property
    def subscriber_count(self) -> int:
        """Number of open subscribers."""
        return len(self._subscribers)


__all__ = [
    "DEFAULT_QUEUE_SIZE",
    "INITIAL_CHUNK",
    "NotificationHub",
    "Subscriber",
    "SubscriberClosed",
    "format_event",
]
