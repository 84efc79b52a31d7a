"""Resumable gateway session client for chat-platform application commands."""

from tradegate.bootstrap import serve_forever, start_session
from tradegate.config import GatewaySettings, get_settings
from tradegate.errors import FatalGatewayError, GatewayError, TransportClosed, TransportError
from tradegate.models import ApplicationCommandEvent
from tradegate.network import GatewayHandle, ResumeState, ResumeStore

__all__ = [
    "ApplicationCommandEvent",
    "FatalGatewayError",
    "GatewayError",
    "GatewayHandle",
    "GatewaySettings",
    "ResumeState",
    "ResumeStore",
    "TransportClosed",
    "TransportError",
    "get_settings",
    "serve_forever",
    "start_session",
]
