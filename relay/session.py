"""Per-connection loop draining a hub subscription into Server-Sent Events."""
from __future__ import annotations

import asyncio
import enum
import logging
from contextlib import suppress
from typing import AsyncIterator

from relay.hub import Hub, HubClosed, Lagged
from relay.models import Message
from relay.shutdown import Shutdown

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    ACTIVE = "active"
    EMITTING = "emitting"
    CLOSED_BY_PEER = "closed_by_peer"
    CLOSED_BY_SHUTDOWN = "closed_by_shutdown"
    CLOSED_BY_UPSTREAM = "closed_by_upstream"


CLOSED_STATES = {
    SessionState.CLOSED_BY_PEER,
    SessionState.CLOSED_BY_SHUTDOWN,
    SessionState.CLOSED_BY_UPSTREAM,
}


def encode_event(message: Message) -> str:
    """Serialize one message as a single SSE ``data`` frame."""
    return f"data: {message.model_dump_json()}\n\n"


class ListenerSession:
    """Streams every message published after construction to one peer.

    The subscription is taken in ``__init__`` so a listener sees messages
    published between accepting the request and the first read.
    """

    def __init__(self, hub: Hub, shutdown: Shutdown) -> None:
        self.subscription = hub.subscribe()
        self.shutdown = shutdown
        self.state = SessionState.ACTIVE
        self.emitted = 0

    @property
    def closed(self) -> bool:
        return self.state in CLOSED_STATES

    async def messages(self) -> AsyncIterator[Message]:
        """Yield messages until the peer leaves, the server stops or the hub closes."""
        if self.closed:
            return
        logger.debug("Listener session opened")
        stop = asyncio.ensure_future(self.shutdown.wait())
        recv = None
        try:
            while True:
                recv = asyncio.ensure_future(self.subscription.recv())
                await asyncio.wait({recv, stop}, return_when=asyncio.FIRST_COMPLETED)
                if stop.done():
                    self.state = SessionState.CLOSED_BY_SHUTDOWN
                    return
                try:
                    message = recv.result()
                except Lagged as exc:
                    logger.debug("Listener lagged, %s messages skipped", exc.skipped)
                    continue
                except HubClosed:
                    self.state = SessionState.CLOSED_BY_UPSTREAM
                    return
                self.state = SessionState.EMITTING
                yield message
                self.emitted += 1
                self.state = SessionState.ACTIVE
        finally:
            if not self.closed:
                self.state = SessionState.CLOSED_BY_PEER
            for task in (recv, stop):
                if task is None:
                    continue
                if not task.done():
                    task.cancel()
                    with suppress(asyncio.CancelledError):
                        await task
                elif not task.cancelled():
                    # recv may have finished alongside shutdown with Lagged or HubClosed
                    task.exception()
            self.subscription.close()
            logger.debug("Listener session %s after %s events", self.state.value, self.emitted)

    async def events(self) -> AsyncIterator[str]:
        async for message in self.messages():
            yield encode_event(message)

    def close(self) -> None:
        """Release the subscription of a session whose stream never started."""
        if not self.closed:
            self.state = SessionState.CLOSED_BY_PEER
        self.subscription.close()
