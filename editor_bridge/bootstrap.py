"""Bridge bootstrap: build the shared editor connection and keep it alive."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Type

from editor_bridge.config import BridgeSettings, get_settings
from editor_bridge.network.connection import EditorConnection
from editor_bridge.network.errors import ConnectFailed
from editor_bridge.network.transport.base import BaseTransport
from editor_bridge.network.transport.dummy import DummyTransport
from editor_bridge.network.transport.websocket import WebSocketTransport

LOGGER = logging.getLogger(__name__)


def build_connection(settings: Optional[BridgeSettings] = None) -> EditorConnection:
    """Construct the connection every command caller shares."""

    settings = settings or get_settings()
    resolved_cls: Type[BaseTransport]
    resolved_cls = WebSocketTransport if settings.transport == "websocket" else DummyTransport
    LOGGER.debug("Initialising editor connection via %s", resolved_cls.__name__)
    return EditorConnection(settings, transport_factory=lambda s: resolved_cls(s))


async def open_connection(settings: Optional[BridgeSettings] = None) -> EditorConnection:
    """Build the connection and try to connect once; retries continue in the background."""

    connection = build_connection(settings)
    try:
        await connection.connect()
    except ConnectFailed as exc:
        LOGGER.warning("Could not connect to editor: %s", exc)
        LOGGER.warning("Will keep retrying in the background")
    return connection


async def serve_forever(settings: Optional[BridgeSettings] = None) -> None:
    """Hold the editor connection open until cancelled."""

    connection = await open_connection(settings)
    try:
        await asyncio.Future()  # block until cancelled
    except asyncio.CancelledError:
        LOGGER.info("Bridge shutdown requested")
        raise
    finally:
        await connection.close()
