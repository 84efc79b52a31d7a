"""State that must survive a connection replacement."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ResumeState:
    url: str
    session_id: str
    sequence: int


class ResumeStore:
    """Last sequence number, resume URL and session id for the gateway session.

    Outlives individual ``Session`` instances so the next connection can
    resume. A partially populated record is never handed out by ``get()``.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._url: Optional[str] = None
        self._session_id: Optional[str] = None
        self._sequence: Optional[int] = None

    def get(self) -> Optional[ResumeState]:
        with self._lock:
            if self._url is None or self._session_id is None or self._sequence is None:
                return None
            return ResumeState(url=self._url, session_id=self._session_id, sequence=self._sequence)

    def update_from_ready(self, url: str, session_id: str) -> None:
        with self._lock:
            self._url = url
            self._session_id = session_id

    def update_sequence(self, sequence: int) -> None:
        with self._lock:
            self._sequence = sequence

    def clear(self) -> None:
        with self._lock:
            self._url = None
            self._session_id = None
            self._sequence = None

    def snapshot(self) -> dict[str, Any]:
        """Diagnostic view, including partial records ``get()`` refuses to return."""

        with self._lock:
            return {
                "has_url": self._url is not None,
                "has_session_id": self._session_id is not None,
                "sequence": self._sequence,
                "resumable": None not in (self._url, self._session_id, self._sequence),
            }
