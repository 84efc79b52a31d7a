"""Frame codec: wire envelopes <-> session events.

Inbound frames are ``{"op", "d", "s", "t"}`` JSON text; outbound frames are
``{"op", "d"}``. Decoding never raises anything but ``DecodeError`` so the
session can log and drop a bad frame without tearing the connection down.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, StrictBool, TypeAdapter, ValidationError

from tradegate.models import (
    GatewayEnvelope,
    HelloPayload,
    IdentifyPayload,
    IdentifyProperties,
    PresencePayload,
    ResumePayload,
)

# Frames above this size make the remote side drop the connection.
MAX_FRAME_BYTES = 4096


class Opcode(enum.IntEnum):
    DISPATCH = 0
    HEARTBEAT = 1
    IDENTIFY = 2
    RESUME = 6
    RECONNECT = 7
    INVALID_SESSION = 9
    HELLO = 10
    HEARTBEAT_ACK = 11


class DecodeError(ValueError):
    """Base class for frames the session cannot interpret."""


class UnsupportedEncoding(DecodeError):
    """Binary frame received; only JSON text frames are supported."""


class MalformedFrame(DecodeError):
    """Frame is not a valid envelope or its payload has the wrong shape."""


class UnknownOpcode(DecodeError):
    def __init__(self, op: int) -> None:
        super().__init__(f"Unknown opcode {op}")
        self.op = op


# Inbound events


@dataclass(frozen=True)
class Dispatch:
    payload: Any
    sequence: int
    event_name: str


@dataclass(frozen=True)
class HeartbeatRequest:
    pass


@dataclass(frozen=True)
class Reconnect:
    pass


@dataclass(frozen=True)
class InvalidSession:
    resumable: bool


@dataclass(frozen=True)
class Hello:
    heartbeat_interval_ms: int


@dataclass(frozen=True)
class HeartbeatAck:
    pass


InboundEvent = Union[Dispatch, HeartbeatRequest, Reconnect, InvalidSession, Hello, HeartbeatAck]


# Outbound events


@dataclass(frozen=True)
class Heartbeat:
    sequence: Optional[int] = None


@dataclass(frozen=True)
class Identify:
    token: str = field(repr=False)
    intents: int
    properties: IdentifyProperties = field(default_factory=IdentifyProperties)
    presence: PresencePayload = field(default_factory=PresencePayload)


@dataclass(frozen=True)
class Resume:
    token: str = field(repr=False)
    session_id: str
    sequence: int


OutboundEvent = Union[Heartbeat, Identify, Resume]

_RESUMABLE = TypeAdapter(StrictBool)


def decode(raw: Union[str, bytes, bytearray]) -> InboundEvent:
    """Decode one inbound frame into a session event."""

    if isinstance(raw, (bytes, bytearray)):
        raise UnsupportedEncoding(f"Binary frame of {len(raw)} bytes is not supported")
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedFrame(f"Frame is not valid JSON: {exc}") from exc
    except RecursionError as exc:
        raise MalformedFrame("Frame is nested too deeply to decode") from exc
    if not isinstance(data, dict):
        raise MalformedFrame("Frame must be a JSON object")
    try:
        envelope = GatewayEnvelope.model_validate(data)
    except ValidationError as exc:
        raise MalformedFrame(f"Invalid envelope: {exc}") from exc

    op = envelope.op
    if op == Opcode.DISPATCH:
        if "d" not in envelope.model_fields_set or envelope.s is None or envelope.t is None:
            raise MalformedFrame("Dispatch frame requires d, s and t")
        return Dispatch(payload=envelope.d, sequence=envelope.s, event_name=envelope.t)
    if op == Opcode.HEARTBEAT:
        return HeartbeatRequest()
    if op == Opcode.RECONNECT:
        return Reconnect()
    if op == Opcode.INVALID_SESSION:
        try:
            resumable = _RESUMABLE.validate_python(envelope.d)
        except ValidationError as exc:
            raise MalformedFrame("Invalid session frame requires a boolean d") from exc
        return InvalidSession(resumable=resumable)
    if op == Opcode.HELLO:
        try:
            hello = HelloPayload.model_validate(envelope.d)
        except ValidationError as exc:
            raise MalformedFrame(f"Invalid hello payload: {exc}") from exc
        return Hello(heartbeat_interval_ms=hello.heartbeat_interval)
    if op == Opcode.HEARTBEAT_ACK:
        return HeartbeatAck()
    raise UnknownOpcode(op)


def _dump(payload: BaseModel) -> dict[str, Any]:
    return payload.model_dump(mode="json")


def encode(event: OutboundEvent) -> str:
    """Serialize an outbound event to a JSON text frame."""

    if isinstance(event, Heartbeat):
        frame = {"op": int(Opcode.HEARTBEAT), "d": event.sequence}
    elif isinstance(event, Identify):
        payload = IdentifyPayload(
            token=event.token,
            properties=event.properties,
            presence=event.presence,
            intents=event.intents,
        )
        frame = {"op": int(Opcode.IDENTIFY), "d": _dump(payload)}
    elif isinstance(event, Resume):
        payload = ResumePayload(token=event.token, session_id=event.session_id, seq=event.sequence)
        frame = {"op": int(Opcode.RESUME), "d": _dump(payload)}
    else:
        raise TypeError(f"Cannot encode {type(event).__name__}")
    return json.dumps(frame, separators=(",", ":"))
