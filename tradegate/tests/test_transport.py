import logging

import pytest

from tradegate.network.transport.websocket import WebSocketTransport
from tradegate.tests.fakes import make_settings


class _FakeConnection:
    def __init__(self, incoming: str) -> None:
        self.incoming = incoming
        self.sent = []

    async def recv(self) -> str:
        return self.incoming

    async def send(self, frame: str) -> None:
        self.sent.append(frame)


@pytest.mark.asyncio
async def test_websocket_transport_logs_sizes_not_frame_bodies(caplog):
    caplog.set_level(logging.DEBUG, logger="tradegate.network.transport.websocket")
    inbound = '{"op":0,"s":1,"t":"READY","d":{"session_id":"secret-session"}}'
    outbound = '{"op":2,"d":{"token":"secret-token"}}'
    transport = WebSocketTransport(make_settings())
    connection = _FakeConnection(inbound)
    transport._ws = connection

    assert await transport.receive() == inbound
    await transport.send(outbound)

    assert connection.sent == [outbound]
    assert "secret-session" not in caplog.text
    assert "secret-token" not in caplog.text
    assert f"({len(inbound)} chars)" in caplog.text
