"""Reconnection backoff and the single-shot reconnect task."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)


class Backoff:
    """Delay schedule between reconnection attempts.

    Each call to :meth:`next_delay` adds up to ``jitter`` seconds to the
    current delay, never returns less than the previous delay and never more
    than ``max_delay``. The underlying delay then grows by ``multiplier``.
    A multiplier of 1 with no jitter gives a fixed retry cadence.
    """

    def __init__(
        self,
        initial_delay: float,
        max_delay: float,
        *,
        multiplier: float = 2.0,
        jitter: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        if initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if max_delay < initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        self.initial_delay = float(initial_delay)
        self.max_delay = float(max_delay)
        self.multiplier = float(multiplier)
        self.jitter = max(0.0, float(jitter))
        self.current_delay = self.initial_delay
        self._last_delay = 0.0
        self._rng = rng or random.Random()

    def next_delay(self) -> float:
        jitter = self._rng.uniform(0, self.jitter) if self.jitter else 0.0
        delay = min(max(self.current_delay + jitter, self._last_delay), self.max_delay)
        self._last_delay = delay
        self.current_delay = min(self.current_delay * self.multiplier, self.max_delay)
        return delay

    def reset(self) -> None:
        self.current_delay = self.initial_delay
        self._last_delay = 0.0


class ReconnectScheduler:
    """Runs at most one delayed reconnect attempt at a time."""

    def __init__(self, backoff: Backoff, attempt: Callable[[], Awaitable[None]], *, name: str = "editor-reconnect") -> None:
        self._backoff = backoff
        self._attempt = attempt
        self._name = name
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self) -> bool:
        """Start a delayed attempt; returns False if one is already waiting."""

        if self.pending:
            return False
        delay = self._backoff.next_delay()
        LOGGER.info("Reconnecting to editor in %.2fs", delay)
        self._task = asyncio.get_running_loop().create_task(self._run(delay), name=self._name)
        return True

    def cancel(self) -> None:
        task = self._task
        self._task = None
        if task and not task.done():
            task.cancel()

    async def _run(self, delay: float) -> None:
        await asyncio.sleep(delay)
        # The attempt may schedule the next one while this task is still finishing.
        self._task = None
        try:
            await self._attempt()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Reconnect attempt failed: %s", exc)
