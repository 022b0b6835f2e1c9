"""Request-scoped dependencies handing shared objects to route handlers."""
from __future__ import annotations

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine

from relay.hub import Hub
from relay.models import User
from relay.settings import Settings
from relay.shutdown import Shutdown


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_hub(request: Request) -> Hub:
    return request.app.state.hub


def get_shutdown(request: Request) -> Shutdown:
    return request.app.state.shutdown


def get_engine(request: Request) -> AsyncEngine:
    return request.app.state.engine


def get_user(request: Request) -> User:
    """Read the principal name injected by the fronting proxy."""
    header = request.app.state.settings.PRINCIPAL_HEADER
    return User(username=request.headers.get(header))
