"""Gateway bootstrap entrypoint: settings, REST discovery and session wiring."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Type, Union

from tradegate.config import GatewaySettings, get_settings
from tradegate.execution import Fallback, Handler
from tradegate.models import ApplicationCommandEvent
from tradegate.network.client import GatewayHandle, launch_session
from tradegate.network.resume_store import ResumeStore
from tradegate.network.transport.base import BaseTransport
from tradegate.network.transport.dummy import DummyTransport
from tradegate.network.transport.websocket import WebSocketTransport
from tradegate.rest import RestClient

LOGGER = logging.getLogger(__name__)
_handle: GatewayHandle | None = None


def build_transport_factory(settings: GatewaySettings) -> Callable[[GatewaySettings], BaseTransport]:
    resolved_cls: Type[BaseTransport]
    resolved_cls = WebSocketTransport if settings.transport == "websocket" else DummyTransport
    LOGGER.debug("Gateway transport: %s", resolved_cls.__name__)
    return lambda s: resolved_cls(s)


def build_default_fallback(rest: RestClient, settings: GatewaySettings) -> Fallback:
    """Answer a failed interaction with a generic ephemeral message."""

    async def _fallback(event: ApplicationCommandEvent, reason: str, error: Optional[BaseException]) -> None:
        LOGGER.info("Sending fallback response for interaction %s (%s)", event.id, reason)
        await asyncio.to_thread(
            rest.create_interaction_response,
            event.id,
            event.token,
            settings.interaction_failure_message,
        )

    return _fallback


def start_session(
    credential: Union[str, GatewaySettings],
    handler: Handler,
    *,
    fallback: Optional[Fallback] = None,
    rest_client: Optional[RestClient] = None,
    store: Optional[ResumeStore] = None,
) -> GatewayHandle:
    """Begin the supervised gateway session loop.

    ``credential`` is either a bot token (other settings come from the
    environment/config file) or a fully built ``GatewaySettings``. The
    gateway address is discovered over REST before the first connection.
    """

    if isinstance(credential, GatewaySettings):
        settings = credential
    else:
        settings = get_settings().model_copy(update={"token": credential})
    rest = rest_client or RestClient.from_settings(settings)
    if fallback is None:
        fallback = build_default_fallback(rest, settings)

    async def _discover() -> str:
        return await asyncio.to_thread(rest.get_gateway_url)

    return launch_session(
        settings,
        handler,
        discover=_discover,
        transport_factory=build_transport_factory(settings),
        fallback=fallback,
        store=store,
    )


async def log_command(event: ApplicationCommandEvent) -> None:
    """Default handler: record the command; business logic lives elsewhere."""

    options = {name: getattr(option, "value", None) for name, option in event.options().items()}
    LOGGER.info(
        "Command /%s%s from user=%s options=%s",
        event.command_name,
        "".join(f" {name}" for name in event.subcommand_path()),
        event.user_id,
        options,
    )


async def setup(handler: Optional[Handler] = None) -> GatewayHandle:
    """Construct, wire, and start the gateway session."""

    global _handle
    settings = get_settings()
    _handle = start_session(settings, handler or log_command)
    return _handle


async def serve_forever(handler: Optional[Handler] = None) -> None:
    """Run the gateway until cancelled; ``FatalGatewayError`` propagates to the caller."""

    handle = await setup(handler)
    try:
        await handle.wait()
    except asyncio.CancelledError:
        LOGGER.info("Gateway shutdown requested")
        raise
    finally:
        if not handle.done:
            await handle.close()
