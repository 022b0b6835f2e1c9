import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from relay.db import make_engine
from relay.hub import Hub
from relay.settings import Settings, settings as default_settings
from relay.shutdown import Shutdown
from relay.web import router as web_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    state = app.state
    state.hub = Hub(capacity=state.settings.BROADCAST_CAPACITY)
    state.engine = make_engine(state.settings.DATABASE_URL)
    logger.info("Broadcast hub ready: capacity=%s", state.hub.capacity)
    try:
        yield
    finally:
        state.shutdown.trigger()
        state.hub.close()
        await state.engine.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings or default_settings
    # Created eagerly so the server's exit handler can reach it before lifespan teardown.
    app.state.shutdown = Shutdown()
    app.include_router(web_router)
    app.mount("/", StaticFiles(directory=app.state.settings.STATIC_DIR, html=True, check_dir=False), name="static")
    return app
