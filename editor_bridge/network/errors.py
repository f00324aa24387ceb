"""Error kinds raised by the editor connection."""

from __future__ import annotations

from typing import Optional


class BridgeError(RuntimeError):
    """Base class for editor bridge failures."""


class NotConnected(BridgeError):
    """Raised when a command is sent without a live connection."""


class ConnectFailed(BridgeError):
    """Raised when the transport cannot be opened."""


class ConnectTimeout(ConnectFailed):
    """Raised when the connect deadline expires before the handshake completes."""


class ConnectionClosed(BridgeError):
    """Raised for commands outstanding when the socket goes away."""


class CommandTimeout(BridgeError):
    """Raised when no reply arrives within the per-command deadline."""

    def __init__(self, command_type: str, *, command_id: Optional[str] = None, timeout: Optional[float] = None) -> None:
        super().__init__(f"Command timed out: {command_type}")
        self.command_type = command_type
        self.command_id = command_id
        self.timeout = timeout


class RemoteError(BridgeError):
    """Raised when the editor answers a command with status=error."""

    def __init__(
        self,
        message: str,
        *,
        command_type: Optional[str] = None,
        command_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.command_type = command_type
        self.command_id = command_id


class DecodeError(BridgeError, ValueError):
    """Raised by the codec for frames that are not valid response envelopes."""
