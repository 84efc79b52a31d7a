"""No-op transport for offline runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Union

from .base import BaseTransport

LOGGER = logging.getLogger(__name__)


class DummyTransport(BaseTransport):
    """Accepts every frame and never receives anything."""

    def __init__(self, settings=None) -> None:
        self._settings = settings

    async def connect(self, url: str) -> None:
        LOGGER.debug("Dummy transport connect(%s)", url)

    async def send(self, frame: str) -> None:
        LOGGER.debug("Dummy transport send() %s chars", len(frame))

    async def receive(self) -> Union[str, bytes]:
        LOGGER.debug("Dummy transport receive() (no-op)")
        await asyncio.sleep(3600)
        return ""

    async def close(self, code: int = 1000, reason: str = "") -> None:
        LOGGER.debug("Dummy transport close(code=%s)", code)
