import asyncio
import json
from typing import Any, Optional

import pytest

from editor_bridge.config import BridgeSettings
from editor_bridge.network.transport.base import BaseTransport


class ScriptedTransport(BaseTransport):
    """In-memory transport whose inbound frames are pushed by the test."""

    def __init__(
        self,
        *,
        connect_error: Optional[BaseException] = None,
        connect_delay: float = 0.0,
        send_error: Optional[BaseException] = None,
    ) -> None:
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.send_error = send_error
        self.sent: list[str] = []
        self.connected = False
        self.closed = False
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def url(self) -> str:
        return "ws://editor.test:9080"

    async def connect(self) -> None:
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def send(self, frame: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(frame)

    async def receive(self) -> str | bytes:
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True
        self._inbox.put_nowait(EOFError("transport closed"))

    def push(self, frame: Any) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._inbox.put_nowait(frame)

    def reply(self, command_id: str, result: Any = None) -> None:
        self.push({"commandId": command_id, "status": "success", "result": result})

    def drop(self, reason: str = "peer went away") -> None:
        self._inbox.put_nowait(ConnectionResetError(reason))

    def sent_envelopes(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]


class TransportFactory:
    """Creates one ScriptedTransport per connection attempt."""

    def __init__(self) -> None:
        self.created: list[ScriptedTransport] = []
        self.connect_errors: list[Optional[BaseException]] = []
        self.connect_delay = 0.0

    def __call__(self, settings: BridgeSettings) -> ScriptedTransport:
        error = self.connect_errors.pop(0) if self.connect_errors else None
        transport = ScriptedTransport(connect_error=error, connect_delay=self.connect_delay)
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> ScriptedTransport:
        return self.created[-1]


async def wait_for(predicate, *, timeout: float = 1.0, interval: float = 0.005) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings(
        command_timeout_seconds=1.0,
        connect_timeout_seconds=0.5,
        reconnect_base_delay_seconds=0.01,
        reconnect_max_delay_seconds=0.05,
        reconnect_jitter_seconds=0.0,
        heartbeat_interval_seconds=0,
    )


@pytest.fixture
def factory() -> TransportFactory:
    return TransportFactory()
