"""Network stack (codec/pending/backoff/transport/connection) for the editor bridge."""

from editor_bridge.network.backoff import Backoff, ReconnectScheduler
from editor_bridge.network.codec import CommandEnvelope, ResponseEnvelope, ResponseStatus, decode, encode
from editor_bridge.network.connection import EditorConnection
from editor_bridge.network.errors import (
    BridgeError,
    CommandTimeout,
    ConnectFailed,
    ConnectionClosed,
    ConnectTimeout,
    DecodeError,
    NotConnected,
    RemoteError,
)
from editor_bridge.network.pending import PendingRequest, PendingTable
from editor_bridge.network.state import ConnectionState
from editor_bridge.network.transport import BaseTransport, DummyTransport, WebSocketTransport

__all__ = [
    "EditorConnection",
    "ConnectionState",
    "Backoff",
    "ReconnectScheduler",
    "PendingRequest",
    "PendingTable",
    "CommandEnvelope",
    "ResponseEnvelope",
    "ResponseStatus",
    "encode",
    "decode",
    "BaseTransport",
    "DummyTransport",
    "WebSocketTransport",
    "BridgeError",
    "NotConnected",
    "ConnectFailed",
    "ConnectTimeout",
    "ConnectionClosed",
    "CommandTimeout",
    "RemoteError",
    "DecodeError",
]
