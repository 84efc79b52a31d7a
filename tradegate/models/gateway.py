"""Wire models for gateway frames and handshake payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictInt


class GatewayEnvelope(BaseModel):
    """Inbound frame envelope: opcode, payload, sequence, event name."""

    op: StrictInt
    d: Any = None
    s: Optional[StrictInt] = None
    t: Optional[str] = None


class HelloPayload(BaseModel):
    heartbeat_interval: StrictInt = Field(gt=0)


class ReadyPayload(BaseModel):
    """The subset of the READY dispatch the session needs to resume later."""

    session_id: str
    resume_gateway_url: str
    v: Optional[int] = None
    user: Optional[Dict[str, Any]] = None
    application: Optional[Dict[str, Any]] = None

    @property
    def user_id(self) -> Optional[str]:
        if self.user:
            return self.user.get("id")
        return None

    @property
    def application_id(self) -> Optional[str]:
        if self.application:
            return self.application.get("id")
        return None


class IdentifyProperties(BaseModel):
    os: str = "linux"
    browser: str = "tradegate"
    device: str = "tradegate"


class PresencePayload(BaseModel):
    since: Optional[int] = None
    activities: List[Dict[str, Any]] = Field(default_factory=list)
    status: str = "online"
    afk: bool = False


class IdentifyPayload(BaseModel):
    token: str
    properties: IdentifyProperties = Field(default_factory=IdentifyProperties)
    compress: bool = False
    presence: PresencePayload = Field(default_factory=PresencePayload)
    intents: int


class ResumePayload(BaseModel):
    token: str
    session_id: str
    seq: int
