"""Change-signal fan-out to connected push subscribers."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone

logger = logging.getLogger("api.broadcaster")

SUBSCRIBER_QUEUE_SIZE = 16


class Subscriber:
    """One open push connection, fed through a small bounded queue.

    A full queue means the connection stopped draining; ``send`` then raises
    ``asyncio.QueueFull`` and the broadcaster closes it as a dead peer. The
    stream serving a closed subscriber ends, so the client reconnects and
    re-pulls state.
    """

    def __init__(self, maxsize: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def send(self, message: str) -> None:
        self._queue.put_nowait(message)

    async def next(self) -> str:
        return await self._queue.get()


class Broadcaster:
    """Pushes a content-free "state changed" signal to every subscriber.

    The signal never carries state; consumers re-pull ``GET /state``.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._subscribers: set[Subscriber] = set()
        self._queue_size = queue_size

    def subscribe(self) -> Subscriber:
        subscriber = Subscriber(self._queue_size)
        self._subscribers.add(subscriber)
        logger.info("Subscriber connected (total=%d)", len(self._subscribers))
        return subscriber

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.discard(subscriber)
            logger.info("Subscriber disconnected (total=%d)", len(self._subscribers))

    @property
    def active_connections(self) -> int:
        """Number of open push connections."""
        return len(self._subscribers)

    def notify(self) -> None:
        """Signal every subscriber; prune the ones that cannot keep up."""
        message = json.dumps(
            {
                "event": "changed",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

        dead: list[Subscriber] = []
        for subscriber in self._subscribers:
            try:
                subscriber.send(message)
            except asyncio.QueueFull:
                logger.warning("Subscriber not draining, dropping it")
                dead.append(subscriber)

        for subscriber in dead:
            subscriber.close()
            self._subscribers.discard(subscriber)
