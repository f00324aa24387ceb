"""Connection state tracking for the editor socket."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class ConnectionState(enum.Enum):
    """Lifecycle of the single editor connection."""

    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"


_ALLOWED = {
    ConnectionState.DISCONNECTED: {ConnectionState.CONNECTING},
    ConnectionState.CONNECTING: {ConnectionState.CONNECTED, ConnectionState.DISCONNECTED},
    ConnectionState.CONNECTED: {ConnectionState.DISCONNECTED},
}


@dataclass
class ConnectionTracker:
    """In-memory connection state with validated transitions."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    connected_at: Optional[datetime] = None

    def transition(self, next_state: ConnectionState) -> None:
        """Move into a new state, rejecting transitions the lifecycle does not allow."""

        if next_state not in _ALLOWED[self.state]:
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)
        if next_state is ConnectionState.CONNECTED:
            self.connected_at = self.last_transition_at

    def mark_disconnected(self) -> bool:
        """Move to DISCONNECTED unless already there; returns True when the state changed."""

        if self.state is ConnectionState.DISCONNECTED:
            return False
        self.transition(ConnectionState.DISCONNECTED)
        return True
