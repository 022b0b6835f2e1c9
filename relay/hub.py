"""Bounded broadcast hub fanning chat messages out to stream listeners.

The hub keeps the last ``capacity`` messages in a ring. Every subscription is
just a cursor (a sequence number) into that ring, so a publisher never waits
for anyone: a listener that falls more than ``capacity`` messages behind finds
its next slot overwritten and is told how many messages it lost.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from relay.models import Message

logger = logging.getLogger(__name__)


class HubClosed(Exception):
    """The hub was torn down and nothing is left for this cursor."""


class Lagged(Exception):
    """The cursor fell behind the ring and ``skipped`` messages were lost."""

    def __init__(self, skipped: int) -> None:
        super().__init__(f"subscriber lagged behind by {skipped} messages")
        self.skipped = skipped


class Hub:
    """Single process-wide broadcast channel.

    Must be used from the event loop thread. ``publish`` is synchronous and
    never suspends, so concurrent publishers are serialized into one order by
    the loop itself.
    """

    def __init__(self, capacity: int = 1024) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._ring: List[Optional[Message]] = [None] * capacity
        # sequence number the next published message will get
        self._tail = 0
        self._subscribers = 0
        self._closed = False
        self._wakeup = asyncio.Event()

    @property
    def subscriber_count(self) -> int:
        return self._subscribers

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, message: Message) -> int:
        """Store ``message`` and wake waiting listeners.

        Returns how many subscriptions will see it; ``0`` is a normal result,
        including after :meth:`close`, when the message is dropped.
        """
        if self._closed:
            logger.debug("Publish after hub close dropped")
            return 0
        self._ring[self._tail % self.capacity] = message
        self._tail += 1
        self._notify()
        return self._subscribers

    def subscribe(self) -> "Subscription":
        """Return a cursor positioned after everything published so far."""
        self._subscribers += 1
        return Subscription(self, self._tail)

    def close(self) -> None:
        """Stop the channel. Buffered messages stay readable, then ``HubClosed``."""
        if self._closed:
            return
        self._closed = True
        logger.debug("Hub closed with %s active subscriptions", self._subscribers)
        self._notify()

    def _notify(self) -> None:
        event, self._wakeup = self._wakeup, asyncio.Event()
        event.set()

    def _release(self) -> None:
        self._subscribers -= 1


class Subscription:
    """Private read cursor into a :class:`Hub`."""

    def __init__(self, hub: Hub, position: int) -> None:
        self._hub = hub
        self._position = position
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def _take(self) -> Optional[Message]:
        hub = self._hub
        oldest = hub._tail - hub.capacity
        if self._position < oldest:
            skipped = oldest - self._position
            self._position = oldest
            raise Lagged(skipped)
        if self._position < hub._tail:
            message = hub._ring[self._position % hub.capacity]
            self._position += 1
            return message.model_copy()
        if hub.closed:
            raise HubClosed()
        return None

    async def recv(self) -> Message:
        """Wait for the next message.

        Raises :class:`Lagged` once per gap and :class:`HubClosed` when the
        hub is gone. Cancelling a pending call does not move the cursor.
        """
        if self._released:
            raise HubClosed()
        while True:
            wakeup = self._hub._wakeup
            message = self._take()
            if message is not None:
                return message
            await wakeup.wait()

    def close(self) -> None:
        if not self._released:
            self._released = True
            self._hub._release()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
