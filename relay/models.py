"""Value types passed between the HTTP layer and the broadcast hub."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Message(BaseModel):
    """One chat line. ``room`` is payload only, every listener gets every room."""

    model_config = ConfigDict(frozen=True)

    room: str
    username: str
    message: str


class User(BaseModel):
    """Identity resolved from the proxy principal header, if any."""

    username: Optional[str] = None
