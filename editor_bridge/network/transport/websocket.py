"""WebSocket transport implementation."""

from __future__ import annotations

import logging
from typing import Optional

import websockets
from websockets.asyncio.client import ClientConnection

from editor_bridge.config import BridgeSettings
from editor_bridge.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """WebSocket transport to the editor plugin."""

    def __init__(self, settings: BridgeSettings) -> None:
        self._settings = settings
        self._ws: Optional[ClientConnection] = None

    @property
    def url(self) -> str:
        return self._settings.ws_url

    async def connect(self) -> None:
        LOGGER.info("Connecting to editor WebSocket at %s", self.url)
        subprotocols = [self._settings.ws_subprotocol] if self._settings.ws_subprotocol else None
        heartbeat = self._settings.heartbeat_interval_seconds or None
        self._ws = await websockets.connect(
            self.url,
            subprotocols=subprotocols,
            open_timeout=None,
            ping_interval=heartbeat,
            ping_timeout=self._settings.heartbeat_timeout_seconds if heartbeat else None,
        )

    async def send(self, frame: str) -> None:
        if not self._ws:
            raise RuntimeError("WebSocket transport not connected")
        LOGGER.debug("WebSocket send: %s", frame)
        await self._ws.send(frame)

    async def receive(self) -> str | bytes:
        if not self._ws:
            raise RuntimeError("WebSocket transport not connected")
        raw = await self._ws.recv()
        LOGGER.debug("WebSocket receive: %s", raw)
        return raw

    async def close(self) -> None:
        if self._ws:
            LOGGER.info("Closing WebSocket transport")
            ws = self._ws
            self._ws = None
            await ws.close()
