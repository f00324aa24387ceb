"""In-flight command bookkeeping and per-command deadlines."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

from editor_bridge.network.errors import CommandTimeout

LOGGER = logging.getLogger(__name__)

_ABANDONED_MAX = 512


@dataclass
class PendingRequest:
    command_id: str
    command_type: str
    future: asyncio.Future[Any]
    deadline: Optional[asyncio.TimerHandle] = None
    created_at: float = field(default_factory=time.monotonic)

    def resolve(self, result: Any) -> bool:
        self._cancel_deadline()
        if self.future.done():
            return False
        self.future.set_result(result)
        return True

    def fail(self, exc: BaseException) -> bool:
        self._cancel_deadline()
        if self.future.done():
            return False
        self.future.set_exception(exc)
        return True

    def _cancel_deadline(self) -> None:
        if self.deadline is not None:
            self.deadline.cancel()
            self.deadline = None


class PendingTable:
    """Maps correlation ids to in-flight commands and expires them on deadline.

    Entries leave the table exactly once: through :meth:`pop` when a reply
    matches, through deadline expiry, through :meth:`discard`, or through
    :meth:`fail_all` when the connection goes away. Ids that left without a
    reply are remembered (bounded) so a late reply can be told apart from an
    unsolicited one.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, PendingRequest] = {}
        self._abandoned: deque[str] = deque()
        self._abandoned_index: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, command_id: object) -> bool:
        return command_id in self._entries

    def register(self, command_id: str, command_type: str, timeout: Optional[float]) -> PendingRequest:
        if command_id in self._entries:
            raise ValueError(f"command id already pending: {command_id}")
        loop = asyncio.get_running_loop()
        entry = PendingRequest(command_id=command_id, command_type=command_type, future=loop.create_future())
        if timeout and timeout > 0:
            entry.deadline = loop.call_later(timeout, self._expire, command_id, timeout)
        self._entries[command_id] = entry
        return entry

    def pop(self, command_id: str) -> Optional[PendingRequest]:
        """Remove a matched entry, cancelling its deadline. The caller completes it."""

        entry = self._entries.pop(command_id, None)
        if entry is not None:
            entry._cancel_deadline()
        return entry

    def discard(self, command_id: str) -> None:
        """Drop an entry nobody will wait for any more."""

        entry = self._entries.pop(command_id, None)
        if entry is None:
            return
        entry._cancel_deadline()
        if not entry.future.done():
            entry.future.cancel()
        self._track_abandoned(command_id)

    def fail_all(self, exc_factory: Callable[[PendingRequest], BaseException]) -> int:
        """Fail and remove every entry; returns how many were outstanding."""

        if not self._entries:
            return 0
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.fail(exc_factory(entry))
            self._track_abandoned(entry.command_id)
        LOGGER.debug("Failed %s pending command(s)", len(entries))
        return len(entries)

    def was_abandoned(self, command_id: str) -> bool:
        return command_id in self._abandoned_index

    def _expire(self, command_id: str, timeout: float) -> None:
        entry = self._entries.pop(command_id, None)
        if entry is None:
            return
        entry.deadline = None
        LOGGER.warning("Command %s (%s) timed out after %.2fs", command_id, entry.command_type, timeout)
        entry.fail(CommandTimeout(entry.command_type, command_id=command_id, timeout=timeout))
        self._track_abandoned(command_id)

    def _track_abandoned(self, command_id: str) -> None:
        if command_id in self._abandoned_index:
            return
        self._abandoned.append(command_id)
        self._abandoned_index.add(command_id)
        if len(self._abandoned) > _ABANDONED_MAX:
            oldest = self._abandoned.popleft()
            self._abandoned_index.discard(oldest)
