"""Gateway close codes and how the supervisor reacts to each."""

from __future__ import annotations

import enum
from typing import Optional


class CloseCode(enum.IntEnum):
    NORMAL = 1000
    GOING_AWAY = 1001
    UNKNOWN_ERROR = 4000
    UNKNOWN_OPCODE = 4001
    DECODE_ERROR = 4002
    NOT_AUTHENTICATED = 4003
    AUTHENTICATION_FAILED = 4004
    ALREADY_AUTHENTICATED = 4005
    INVALID_SEQ = 4007
    RATE_LIMITED = 4008
    SESSION_TIMED_OUT = 4009
    INVALID_SHARD = 4010
    SHARDING_REQUIRED = 4011
    INVALID_API_VERSION = 4012
    INVALID_INTENTS = 4013
    DISALLOWED_INTENTS = 4014


class CloseAction(enum.Enum):
    RESUME = "resume"
    FRESH = "fresh"
    FATAL = "fatal"


# The client configuration is wrong; retrying only repeats the rejection.
FATAL_CLOSE_CODES = frozenset(
    {
        CloseCode.AUTHENTICATION_FAILED,
        CloseCode.INVALID_SHARD,
        CloseCode.SHARDING_REQUIRED,
        CloseCode.INVALID_API_VERSION,
        CloseCode.INVALID_INTENTS,
        CloseCode.DISALLOWED_INTENTS,
    }
)

# The server discarded the session; reconnect with a fresh identify.
NO_RESUME_CLOSE_CODES = frozenset(
    {
        CloseCode.NORMAL,
        CloseCode.GOING_AWAY,
        CloseCode.INVALID_SEQ,
        CloseCode.SESSION_TIMED_OUT,
    }
)

# Codes the client sends itself when it wants the session kept for resume.
# 1000/1001 would invalidate the session server-side.
CLIENT_RECONNECT_CODE = CloseCode.UNKNOWN_ERROR
CLIENT_HEARTBEAT_TIMEOUT_CODE = CloseCode.SESSION_TIMED_OUT
CLIENT_SHUTDOWN_CODE = CloseCode.NORMAL


def classify_close(code: Optional[int]) -> CloseAction:
    """Map a server close code to the reconnect strategy.

    ``None`` means the connection dropped without a close frame, which is a
    transport fault and keeps the resume state.
    """

    if code is None:
        return CloseAction.RESUME
    if code in FATAL_CLOSE_CODES:
        return CloseAction.FATAL
    if code in NO_RESUME_CLOSE_CODES:
        return CloseAction.FRESH
    return CloseAction.RESUME


def describe(code: Optional[int]) -> str:
    if code is None:
        return "no close frame"
    try:
        return f"{code} {CloseCode(code).name}"
    except ValueError:
        return f"{code} (unrecognised)"
