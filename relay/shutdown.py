"""Process-wide shutdown signal shared by every stream."""
from __future__ import annotations

import asyncio


class Shutdown:
    """One-shot flag that open streams race against while they wait."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_triggered(self) -> bool:
        return self._event.is_set()

    def trigger(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
