"""Per-connection session tracking for the gateway state machine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from tradegate.network.resume_store import ResumeState


class SessionState(enum.Enum):
    """Lifecycle of one connection attempt."""

    CONNECTING = "CONNECTING"
    AWAITING_HELLO = "AWAITING_HELLO"
    HANDSHAKING = "HANDSHAKING"
    ACTIVE = "ACTIVE"
    CLOSING = "CLOSING"
    TERMINATED = "TERMINATED"


_ALLOWED = {
    SessionState.CONNECTING: {SessionState.AWAITING_HELLO, SessionState.CLOSING, SessionState.TERMINATED},
    SessionState.AWAITING_HELLO: {SessionState.HANDSHAKING, SessionState.CLOSING, SessionState.TERMINATED},
    SessionState.HANDSHAKING: {SessionState.ACTIVE, SessionState.CLOSING, SessionState.TERMINATED},
    SessionState.ACTIVE: {SessionState.HANDSHAKING, SessionState.CLOSING, SessionState.TERMINATED},
    SessionState.CLOSING: {SessionState.TERMINATED},
    SessionState.TERMINATED: set(),
}


@dataclass
class SessionTracker:
    """Mutable state owned by exactly one running ``Session``.

    Rebuilt for every connection attempt; only ``ResumeStore`` carries data
    across reconnects.
    """

    resume: Optional[ResumeState] = None
    state: SessionState = SessionState.CONNECTING
    last_sequence: Optional[int] = None
    heartbeat_acknowledged: bool = True
    ready: bool = False
    session_id: Optional[str] = None
    last_transition_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    def transition(self, next_state: SessionState) -> None:
        """Move the session into a new state, validating allowed transitions."""

        if next_state not in _ALLOWED.get(self.state, set()):
            raise ValueError(f"Invalid transition {self.state.value} → {next_state.value}")
        self.state = next_state
        self.last_transition_at = datetime.now(tz=timezone.utc)

    @property
    def handshake_completed(self) -> bool:
        return self.state is SessionState.ACTIVE
