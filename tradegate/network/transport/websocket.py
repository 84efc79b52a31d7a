"""WebSocket transport implementation."""

from __future__ import annotations

import logging
from typing import Optional, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from tradegate.config import GatewaySettings
from tradegate.errors import TransportClosed, TransportError

from .base import BaseTransport

LOGGER = logging.getLogger(__name__)


class WebSocketTransport(BaseTransport):
    """WebSocket-based gateway transport (JSON text frames only)."""

    def __init__(self, settings: GatewaySettings) -> None:
        self._settings = settings
        self._ws: Optional[ClientConnection] = None

    async def connect(self, url: str) -> None:
        LOGGER.info("Connecting to gateway WebSocket at %s", url)
        try:
            self._ws = await connect(
                url,
                max_size=None,
                compression=None,
                ping_interval=None,
                close_timeout=self._settings.close_timeout_seconds,
            )
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as exc:
            raise TransportError(f"Failed to connect to {url}: {exc}") from exc

    async def send(self, frame: str) -> None:
        if not self._ws:
            raise TransportError("WebSocket transport not connected")
        LOGGER.debug("WebSocket send (%s chars)", len(frame))
        try:
            await self._ws.send(frame)
        except ConnectionClosed as exc:
            raise self._closed(exc) from exc

    async def receive(self) -> Union[str, bytes]:
        if not self._ws:
            raise TransportError("WebSocket transport not connected")
        try:
            raw = await self._ws.recv()
        except ConnectionClosed as exc:
            raise self._closed(exc) from exc
        LOGGER.debug("WebSocket receive (%s chars)", len(raw))
        return raw

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._ws:
            LOGGER.info("Closing WebSocket transport code=%s", code)
            ws = self._ws
            self._ws = None
            await ws.close(code=code, reason=reason)

    @staticmethod
    def _closed(exc: ConnectionClosed) -> TransportClosed:
        received = exc.rcvd
        if received is None:
            return TransportClosed(None, "")
        return TransportClosed(received.code, received.reason)
