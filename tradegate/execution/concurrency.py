"""Single-flight guard keyed by interaction id."""

from __future__ import annotations

from typing import Set


class InflightGuard:
    """Tracks in-flight interaction ids so a redelivered event is not run twice.

    Only touched from the event loop thread, so plain set operations suffice.
    """

    def __init__(self) -> None:
        self._inflight: Set[str] = set()

    def claim(self, key: str) -> bool:
        if not key:
            return True
        if key in self._inflight:
            return False
        self._inflight.add(key)
        return True

    def release(self, key: str) -> None:
        self._inflight.discard(key)

    def inflight(self) -> int:
        """Return the current number of in-flight keys."""

        return len(self._inflight)
