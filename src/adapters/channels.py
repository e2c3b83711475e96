"""
In-process push channel hub.

Each user has a private channel named `user_<id>`. The export worker publishes
terminal-status events from its own thread; subscribers are plain callables or
asyncio queues owned by a WebSocket connection.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

Event = dict[str, Any]
Subscriber = Callable[[Event], None]


def user_channel(user_id: UUID | str) -> str:
    return f"user_{user_id}"


class ChannelHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, channel: str, subscriber: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that removes it."""
        with self._lock:
            self._subscribers[channel].append(subscriber)

        def unsubscribe() -> None:
            with self._lock:
                subs = self._subscribers.get(channel, [])
                if subscriber in subs:
                    subs.remove(subscriber)
                if not subs:
                    self._subscribers.pop(channel, None)

        return unsubscribe

    def subscribe_queue(
        self,
        channel: str,
        queue: asyncio.Queue[Event],
        loop: asyncio.AbstractEventLoop,
    ) -> Callable[[], None]:
        """Deliver events into an asyncio queue, safe to publish from any thread."""

        def deliver(event: Event) -> None:
            loop.call_soon_threadsafe(queue.put_nowait, event)

        return self.subscribe(channel, deliver)

    def publish(self, channel: str, event: Event) -> int:
        """Send an event to every subscriber of a channel. Returns delivery count."""
        with self._lock:
            subs = list(self._subscribers.get(channel, []))

        delivered = 0
        for subscriber in subs:
            try:
                subscriber(event)
                delivered += 1
            except RuntimeError as e:
                # Event loop of a closed connection
                logger.warning("Dropping event for %s: %s", channel, e)
        return delivered

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))
