#!/usr/bin/env python
"""Application entry point."""
import asyncio
import logging
from typing import Optional

import uvicorn

from relay.app_factory import create_app
from relay.settings import settings
from relay.shutdown import Shutdown

logging.basicConfig(level=settings.LOG_LEVEL)

app = create_app()


class RelayServer(uvicorn.Server):
    """Ends open event streams as soon as an exit signal arrives.

    uvicorn waits for in-flight responses before running lifespan shutdown,
    and event streams never finish on their own.
    """

    def __init__(self, config: uvicorn.Config, shutdown: Shutdown) -> None:
        super().__init__(config)
        self.shutdown = shutdown
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def serve(self, sockets=None) -> None:
        self._loop = asyncio.get_running_loop()
        await super().serve(sockets=sockets)

    def handle_exit(self, sig, frame) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self.shutdown.trigger)
        super().handle_exit(sig, frame)


if __name__ == "__main__":
    logging.info("Chat relay: http://localhost:%s/", settings.APP_PORT)
    config = uvicorn.Config(app, host=settings.APP_HOST, port=settings.APP_PORT)
    server = RelayServer(config, app.state.shutdown)
    try:
        server.run()
    except OSError as exc:
        logging.error("Server failed to start: %s", exc)
        raise
