"""Editor connection: socket lifecycle, command correlation and reconnection."""

from __future__ import annotations

import asyncio
import logging
from itertools import count
from typing import Any, Awaitable, Callable, Iterator, Mapping, Optional

from editor_bridge.config import BridgeSettings
from editor_bridge.network.backoff import Backoff, ReconnectScheduler
from editor_bridge.network.codec import build_command, decode, encode
from editor_bridge.network.errors import (
    ConnectFailed,
    ConnectionClosed,
    ConnectTimeout,
    DecodeError,
    NotConnected,
    RemoteError,
)
from editor_bridge.network.pending import PendingTable
from editor_bridge.network.state import ConnectionState, ConnectionTracker
from editor_bridge.network.transport.base import BaseTransport
from editor_bridge.network.transport.websocket import WebSocketTransport

LOGGER = logging.getLogger(__name__)

COMMAND_ID_PREFIX = "cmd_"


class EditorConnection:
    """One shared connection to the editor, used by every command caller.

    Callers await :meth:`send_command`; replies are matched back to them by
    ``commandId``. When the socket drops, outstanding commands fail with
    :class:`ConnectionClosed` and a reconnect is scheduled with backoff until
    :meth:`disconnect` is called.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        transport_factory: Optional[Callable[[BridgeSettings], BaseTransport]] = None,
        *,
        on_connected: Optional[Callable[[], Awaitable[None]]] = None,
        on_disconnect: Optional[Callable[[Exception], Awaitable[None]]] = None,
        backoff: Optional[Backoff] = None,
    ) -> None:
        self._settings = settings
        self._transport_factory = transport_factory or WebSocketTransport
        self._transport: Optional[BaseTransport] = None
        self._tracker = ConnectionTracker()
        self._pending = PendingTable()
        self._counter: Iterator[int] = count()
        self._command_timeout = float(settings.command_timeout_seconds)
        self._connect_timeout = float(settings.connect_timeout_seconds)
        self._backoff = backoff or Backoff(
            settings.reconnect_base_delay_seconds,
            settings.reconnect_max_delay_seconds,
            multiplier=settings.reconnect_multiplier,
            jitter=settings.reconnect_jitter_seconds,
        )
        self._reconnector = ReconnectScheduler(self._backoff, self._reconnect)
        self._should_reconnect = True
        self._connect_task: Optional[asyncio.Task[None]] = None
        self._recv_task: Optional[asyncio.Task[None]] = None
        self._close_task: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_connected = on_connected
        self._on_disconnect = on_disconnect

    async def __aenter__(self) -> "EditorConnection":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def state(self) -> ConnectionState:
        return self._tracker.state

    @property
    def is_connected(self) -> bool:
        return self._tracker.state is ConnectionState.CONNECTED

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def url(self) -> str:
        return self._settings.ws_url

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnector.pending

    async def connect(self) -> None:
        """Open the socket unless it is already open; join an attempt already in flight."""

        self._should_reconnect = True
        if self._tracker.state is ConnectionState.CONNECTED:
            return
        await self._join_connect()

    async def send_command(self, command_type: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Send one command and wait for the editor's matching reply."""

        connect_task = self._connect_task
        if self._tracker.state is ConnectionState.CONNECTING and connect_task is not None:
            await asyncio.wait({connect_task})
        transport = self._transport
        if transport is None or self._tracker.state is not ConnectionState.CONNECTED:
            raise NotConnected(
                "Not connected to the editor WebSocket. Please ensure the editor is running and its plugin is enabled."
            )

        command_id = f"{COMMAND_ID_PREFIX}{next(self._counter)}"
        frame = encode(build_command(command_type, params, command_id))
        entry = self._pending.register(command_id, command_type, self._command_timeout)
        try:
            await transport.send(frame)
        except asyncio.CancelledError:
            self._pending.discard(command_id)
            raise
        except Exception as exc:  # noqa: BLE001
            self._pending.discard(command_id)
            LOGGER.warning("Failed to send %s (%s): %s", command_id, command_type, exc)
            raise ConnectionClosed(f"Failed to send command {command_type}: {exc}") from exc

        try:
            return await entry.future
        finally:
            # No-op unless the caller was cancelled before the command finished.
            self._pending.discard(command_id)

    def disconnect(self) -> None:
        """Close the connection for good; no reconnection follows."""

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        loop = self._loop
        if loop is not None and running is not loop and loop.is_running():
            # Tasks and timers belong to the connection's loop; tear down there.
            self._should_reconnect = False
            loop.call_soon_threadsafe(self.disconnect)
            return

        self._should_reconnect = False
        self._reconnector.cancel()
        connect_task = self._connect_task
        self._connect_task = None
        if connect_task and not connect_task.done():
            connect_task.cancel()
        recv_task = self._recv_task
        self._recv_task = None
        current = asyncio.current_task() if running is not None else None
        if recv_task and not recv_task.done() and recv_task is not current:
            recv_task.cancel()

        failed = self._pending.fail_all(lambda entry: ConnectionClosed("Connection closed"))
        transport = self._transport
        self._transport = None
        changed = self._tracker.mark_disconnected()
        if changed or failed or transport is not None:
            LOGGER.info("Disconnecting from editor WebSocket server at %s", self.url)
        if transport is None:
            return
        if running is None:
            LOGGER.debug("No running event loop; skipping close handshake with %s", transport.url)
            return
        self._close_task = running.create_task(self._close_transport(transport), name="editor-close")

    async def close(self) -> None:
        """Disconnect and wait for the socket to finish closing."""

        self.disconnect()
        task = self._close_task
        self._close_task = None
        if task:
            await task

    async def _join_connect(self) -> None:
        task = self._connect_task
        if task is None or task.done():
            self._tracker.transition(ConnectionState.CONNECTING)
            self._loop = asyncio.get_running_loop()
            task = self._loop.create_task(self._open(), name="editor-connect")
            task.add_done_callback(_consume_outcome)
            self._connect_task = task
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise ConnectionClosed("Connection attempt aborted by disconnect()") from None
            raise

    async def _reconnect(self) -> None:
        if not self._should_reconnect or self._tracker.state is not ConnectionState.DISCONNECTED:
            return
        await self._join_connect()

    async def _open(self) -> None:
        transport = self._transport_factory(self._settings)
        try:
            await asyncio.wait_for(transport.connect(), timeout=self._connect_timeout)
        except asyncio.CancelledError:
            # disconnect() already reset the state; a newer attempt may own it by now.
            if self._connect_task is asyncio.current_task():
                self._tracker.mark_disconnected()
            await self._close_transport(transport)
            raise
        except asyncio.TimeoutError as exc:
            await self._connect_failed(transport, exc)
            raise ConnectTimeout(
                f"Timed out connecting to {transport.url} after {self._connect_timeout:.2f}s"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            await self._connect_failed(transport, exc)
            raise ConnectFailed(f"Could not connect to {transport.url}: {exc}") from exc

        self._transport = transport
        self._tracker.transition(ConnectionState.CONNECTED)
        self._backoff.reset()
        self._reconnector.cancel()
        self._recv_task = asyncio.get_running_loop().create_task(
            self._receive_loop(transport), name="editor-recv"
        )
        LOGGER.info("Connected to editor WebSocket server at %s", transport.url)
        await self._run_hook(self._on_connected)

    async def _connect_failed(self, transport: BaseTransport, exc: BaseException) -> None:
        self._tracker.mark_disconnected()
        LOGGER.warning("Editor connect failed (%s): %s", transport.url, str(exc) or type(exc).__name__)
        await self._close_transport(transport)
        if self._should_reconnect:
            self._reconnector.schedule()

    async def _receive_loop(self, transport: BaseTransport) -> None:
        try:
            while True:
                frame = await transport.receive()
                self._handle_frame(frame)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            await self._handle_close(transport, exc)

    def _handle_frame(self, frame: str | bytes) -> None:
        try:
            response = decode(frame)
        except DecodeError as exc:
            LOGGER.warning("Dropping malformed frame from editor: %s", exc)
            return
        LOGGER.debug("Received response: %s", response)

        command_id = response.command_id
        if command_id is None:
            LOGGER.debug("Dropping response without commandId: %s", response)
            return
        entry = self._pending.pop(command_id)
        if entry is None:
            if self._pending.was_abandoned(command_id):
                LOGGER.debug("Ignored late reply for abandoned command %s", command_id)
            else:
                LOGGER.debug("Ignored reply for unknown command %s", command_id)
            return
        if response.ok:
            entry.resolve(response.result)
        else:
            entry.fail(
                RemoteError(
                    response.message or "Unknown error",
                    command_type=entry.command_type,
                    command_id=command_id,
                )
            )

    async def _handle_close(self, transport: BaseTransport, exc: Exception) -> None:
        if transport is not self._transport:
            return
        LOGGER.warning("Editor connection closed: %s", str(exc) or type(exc).__name__)
        self._transport = None
        self._recv_task = None
        self._tracker.mark_disconnected()
        self._pending.fail_all(lambda entry: ConnectionClosed("Connection closed"))
        await self._close_transport(transport)
        await self._run_hook(self._on_disconnect, exc)
        if self._should_reconnect and self._transport is None:
            self._reconnector.schedule()

    async def _close_transport(self, transport: BaseTransport) -> None:
        try:
            await transport.close()
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress transport close error", exc_info=True)

    async def _run_hook(self, hook: Optional[Callable[..., Awaitable[None]]], *args: Any) -> None:
        if hook is None:
            return
        try:
            await hook(*args)
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress connection hook error", exc_info=True)


def _consume_outcome(task: asyncio.Task[None]) -> None:
    # Failures are surfaced to the awaiting callers; keep asyncio from reporting them again.
    if not task.cancelled():
        task.exception()
