"""Transport abstractions for the gateway connection."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Union


class BaseTransport(ABC):
    """Abstract WebSocket-like duplex text transport used by the session."""

    @abstractmethod
    async def connect(self, url: str) -> None:
        ...

    @abstractmethod
    async def send(self, frame: str) -> None:
        ...

    @abstractmethod
    async def receive(self) -> Union[str, bytes]:
        """Return the next frame; raise ``TransportClosed`` once the peer is gone."""
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...
