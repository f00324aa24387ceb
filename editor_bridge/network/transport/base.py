"""Transport abstractions for the editor connection."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseTransport(ABC):
    """Message-oriented, bidirectional text transport used by the editor connection."""

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @abstractmethod
    async def connect(self) -> None:
        ...

    @abstractmethod
    async def send(self, frame: str) -> None:
        ...

    @abstractmethod
    async def receive(self) -> str | bytes:
        """Return the next inbound frame; raise once the socket has closed."""

    @abstractmethod
    async def close(self) -> None:
        ...
