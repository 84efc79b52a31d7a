import asyncio

import pytest

from tradegate import bootstrap
from tradegate.errors import FatalGatewayError
from tradegate.network.client import launch_session
from tradegate.network.resume_store import ResumeState
from tradegate.tests.fakes import ScriptedTransport, command, hello, make_settings, ready, wait_until


class _FakeRest:
    def __init__(self) -> None:
        self.responses = []

    def get_gateway_url(self) -> str:
        return "wss://discovered.test"

    def create_interaction_response(self, interaction_id, interaction_token, content, *, ephemeral=True):
        self.responses.append((interaction_id, interaction_token, content, ephemeral))


async def _discover() -> str:
    return "wss://discovered.test"


async def _noop_handler(event) -> None:
    return None


@pytest.mark.asyncio
async def test_handle_exposes_readiness_and_resume_state():
    transport = ScriptedTransport()
    handle = launch_session(
        make_settings(),
        _noop_handler,
        discover=_discover,
        transport_factory=lambda _: transport,
    )

    await wait_until(lambda: transport.urls)
    assert not handle.is_ready
    transport.feed(hello())
    transport.feed(ready(4))
    await handle.wait_ready(timeout=2)

    assert handle.store.resume_state() == ResumeState(url="wss://resume.test", session_id="abc", sequence=4)
    status = handle.status()
    assert status["ready"] is True
    assert status["running"] is True
    assert status["resume"]["resumable"] is True
    assert status["interactions_inflight"] == 0

    await handle.close()
    assert handle.done
    assert transport.closes == [(1000, "client shutdown")]
    assert handle.store.resume_state() is None


@pytest.mark.asyncio
async def test_clear_resume_state_forces_identify_on_next_connection():
    created = []

    def factory(settings):
        created.append(ScriptedTransport(settings))
        return created[-1]

    handle = launch_session(make_settings(), _noop_handler, discover=_discover, transport_factory=factory)
    await wait_until(lambda: created)
    created[0].feed(hello())
    created[0].feed(ready(1))
    await handle.wait_ready(timeout=2)

    handle.store.clear_resume_state()
    assert handle.store.snapshot()["resumable"] is False
    created[0].drop(None)

    await wait_until(lambda: len(created) == 2)
    created[1].feed(hello())
    await wait_until(lambda: created[1].sent_ops(2))
    assert created[1].urls == ["wss://gateway.test/?v=10&encoding=json"]

    await handle.close()


@pytest.mark.asyncio
async def test_handle_wait_reraises_fatal_errors():
    transport = ScriptedTransport()
    handle = launch_session(make_settings(), _noop_handler, discover=_discover, transport_factory=lambda _: transport)

    await wait_until(lambda: transport.urls)
    transport.feed(hello())
    transport.drop(4004, "Authentication failed.")

    with pytest.raises(FatalGatewayError):
        await asyncio.wait_for(handle.wait(), 2)
    assert handle.done


def test_launch_session_requires_a_token():
    with pytest.raises(ValueError):
        launch_session(make_settings(token=None), _noop_handler, discover=_discover, transport_factory=ScriptedTransport)


@pytest.mark.asyncio
async def test_start_session_accepts_a_bare_token(monkeypatch):
    monkeypatch.setattr(bootstrap, "get_settings", lambda: make_settings())

    handle = bootstrap.start_session("other-token", _noop_handler, rest_client=_FakeRest())

    assert handle.supervisor.settings.token == "other-token"
    assert handle.dispatcher.timeout == 2.5
    await handle.close()
    assert handle.done


@pytest.mark.asyncio
async def test_start_session_discovers_gateway_over_rest():
    rest = _FakeRest()
    handle = bootstrap.start_session(make_settings(gateway_url=None), _noop_handler, rest_client=rest)

    assert await handle.supervisor.discover() == "wss://discovered.test"
    await handle.close()


@pytest.mark.asyncio
async def test_default_fallback_sends_ephemeral_failure_message():
    rest = _FakeRest()
    settings = make_settings(interaction_failure_message="Try again later.")
    fallback = bootstrap.build_default_fallback(rest, settings)

    await fallback(command("901"), "timeout", asyncio.TimeoutError())

    assert rest.responses == [("901", "token-901", "Try again later.", True)]


def test_transport_factory_follows_settings():
    websocket = bootstrap.build_transport_factory(make_settings(transport="websocket"))(make_settings())
    dummy = bootstrap.build_transport_factory(make_settings(transport="dummy"))(make_settings())

    assert type(websocket).__name__ == "WebSocketTransport"
    assert type(dummy).__name__ == "DummyTransport"


@pytest.mark.asyncio
async def test_log_command_handler_accepts_nested_options(caplog):
    caplog.set_level("INFO", logger="tradegate.bootstrap")
    event = command(
        "902",
        "order",
        options=[{"type": 1, "name": "buy", "options": [{"type": 3, "name": "symbol", "value": "ACME"}]}],
    )

    await bootstrap.log_command(event)

    assert "/order buy" in caplog.text
    assert "ACME" in caplog.text
