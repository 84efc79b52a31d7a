"""Exceptions shared across the gateway client layers."""

from __future__ import annotations

from typing import Optional


class GatewayError(RuntimeError):
    """Base error for the gateway session client."""


class FatalGatewayError(GatewayError):
    """Raised when the server rejects the client configuration.

    Retrying cannot help: the declared intents, protocol version, sharding
    topology or token need to be corrected by an operator.
    """

    def __init__(self, message: str, *, close_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.close_code = close_code


class TransportError(GatewayError):
    """Raised when the underlying transport fails to connect or send."""


class TransportClosed(TransportError):
    """Raised by a transport when the peer closed the connection."""

    def __init__(self, code: Optional[int] = None, reason: str = "") -> None:
        detail = f"code={code}" if code is not None else "no close frame"
        super().__init__(f"Transport closed ({detail}) {reason}".strip())
        self.code = code
        self.reason = reason
