"""FastAPI routes for posting messages and streaming them back out."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.background import BackgroundTask

from relay.db import describe_tables
from relay.deps import get_engine, get_hub, get_settings, get_shutdown, get_user
from relay.hub import Hub
from relay.models import Message, User
from relay.session import ListenerSession
from relay.settings import Settings
from relay.shutdown import Shutdown

router = APIRouter()


@router.post("/message")
async def post_message(
    request: Request,
    user: User = Depends(get_user),
    hub: Hub = Depends(get_hub),
    settings: Settings = Depends(get_settings),
):
    # Read the raw form so empty values are kept; only absent fields are rejected.
    form = await request.form()
    room, message = form.get("room"), form.get("message")
    if not isinstance(room, str) or not isinstance(message, str):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="room and message are required",
        )
    if len(room) > settings.ROOM_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"room must be shorter than {settings.ROOM_MAX_LENGTH + 1} characters",
        )
    username = settings.GUEST_NAME if user.username is None else user.username
    msg = Message(room=room, username=username, message=message)
    # Nobody listening is fine, the message just isn't seen.
    receivers = hub.publish(msg)
    return {"ok": True, "receivers": receivers}


@router.get("/events")
async def events(hub: Hub = Depends(get_hub), shutdown: Shutdown = Depends(get_shutdown)):
    session = ListenerSession(hub, shutdown)
    return StreamingResponse(
        session.events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        background=BackgroundTask(session.close),
    )


@router.get("/user", response_class=PlainTextResponse)
async def whoami(user: User = Depends(get_user), settings: Settings = Depends(get_settings)):
    return settings.ANONYMOUS_NAME if user.username is None else user.username


@router.get("/db", response_class=PlainTextResponse)
async def db_tables(engine: AsyncEngine = Depends(get_engine)):
    return await describe_tables(engine)
