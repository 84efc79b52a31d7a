"""Network stack (transport/codec/session/supervisor) for the gateway connection."""

from tradegate.network.resume_store import ResumeState, ResumeStore
from tradegate.network import codec
from tradegate.network.close_codes import CloseAction, CloseCode, classify_close
from tradegate.network.heartbeat import HeartbeatDriver
from tradegate.network.transport.base import BaseTransport
from tradegate.network.transport.dummy import DummyTransport
from tradegate.network.transport.websocket import WebSocketTransport
from tradegate.network.session import OutcomeKind, Session, SessionOutcome
from tradegate.network.supervisor import SessionSupervisor
from tradegate.network.client import GatewayHandle, ResumeDiagnostics, launch_session

__all__ = [
    "BaseTransport",
    "CloseAction",
    "CloseCode",
    "DummyTransport",
    "GatewayHandle",
    "HeartbeatDriver",
    "OutcomeKind",
    "ResumeDiagnostics",
    "ResumeState",
    "ResumeStore",
    "Session",
    "SessionOutcome",
    "SessionSupervisor",
    "WebSocketTransport",
    "classify_close",
    "codec",
    "launch_session",
]
