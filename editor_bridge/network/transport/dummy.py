"""No-op transport for offline runs."""

from __future__ import annotations

import asyncio
import logging

from editor_bridge.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)


class DummyTransport(BaseTransport):
    """Accepts every frame and never answers; commands sent through it time out."""

    def __init__(self, settings=None) -> None:
        self._settings = settings
        self._closed = asyncio.Event()

    @property
    def url(self) -> str:
        return "dummy://"

    async def connect(self) -> None:
        LOGGER.debug("Dummy transport connect()")
        self._closed.clear()

    async def send(self, frame: str) -> None:
        LOGGER.debug("Dummy transport send(): %s", frame)

    async def receive(self) -> str | bytes:
        await self._closed.wait()
        raise EOFError("dummy transport closed")

    async def close(self) -> None:
        LOGGER.debug("Dummy transport close()")
        self._closed.set()
