"""Gateway session state machine.

One ``Session`` instance owns one connection attempt:

- opens the transport (fresh gateway URL or the stored resume URL)
- waits for Hello, starts the heartbeat driver, sends Identify or Resume
- consumes frames strictly in arrival order from a single inbox
- keeps the ``ResumeStore`` sequence current and records READY data
- hands application commands to the interaction dispatcher without waiting
- decides how it ended, so the supervisor knows whether to resume, start
  fresh, stop, or give up

The reader task, the heartbeat driver and ``request_close`` only ever put
items into the inbox; all session state is mutated inside ``run``.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import inspect
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union
from urllib.parse import urlencode, urlsplit, urlunsplit

from pydantic import ValidationError

from tradegate.config import GatewaySettings
from tradegate.errors import TransportClosed
from tradegate.execution import InteractionDispatcher
from tradegate.models import ApplicationCommandEvent, IdentifyProperties, ReadyPayload
from tradegate.network import codec
from tradegate.network.close_codes import (
    CLIENT_HEARTBEAT_TIMEOUT_CODE,
    CLIENT_RECONNECT_CODE,
    CLIENT_SHUTDOWN_CODE,
    CloseAction,
    classify_close,
    describe,
)
from tradegate.network.heartbeat import HeartbeatDriver
from tradegate.network.resume_store import ResumeStore
from tradegate.network.session_state import SessionState, SessionTracker
from tradegate.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)

READY_EVENT = "READY"
RESUMED_EVENT = "RESUMED"
INTERACTION_CREATE_EVENT = "INTERACTION_CREATE"


class OutcomeKind(enum.Enum):
    RESUME = "resume"
    FRESH = "fresh"
    CLOSED = "closed"
    FATAL = "fatal"
    CONNECT_FAILED = "connect_failed"


@dataclass
class SessionOutcome:
    kind: OutcomeKind
    close_code: Optional[int] = None
    reason: str = ""
    became_ready: bool = False
    invalid_session: bool = False


# Inbox items


@dataclass(frozen=True)
class _Frame:
    raw: Union[str, bytes]


@dataclass(frozen=True)
class _TransportLost:
    code: Optional[int]
    reason: str


@dataclass(frozen=True)
class _HeartbeatTick:
    pass


@dataclass(frozen=True)
class _CloseRequested:
    pass


InboxItem = Union[_Frame, _TransportLost, _HeartbeatTick, _CloseRequested]


def build_connect_url(base_url: str, api_version: int) -> str:
    """Append the protocol version and JSON encoding to a gateway URL."""

    parts = urlsplit(base_url)
    query = urlencode({"v": api_version, "encoding": "json"})
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", query, ""))


@dataclass
class Session:
    """Gateway client for a single connection attempt."""

    settings: GatewaySettings
    transport_factory: Callable[[GatewaySettings], BaseTransport]
    store: ResumeStore
    gateway_url: str
    dispatcher: Optional[InteractionDispatcher] = None
    on_ready: Optional[Callable[[bool], Union[Awaitable[None], None]]] = None
    rng: Optional[random.Random] = None

    tracker: SessionTracker = field(default_factory=SessionTracker, init=False)
    _inbox: asyncio.Queue[InboxItem] = field(init=False, repr=False)
    _transport: Optional[BaseTransport] = field(default=None, init=False, repr=False)
    _reader_task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)
    _heartbeat: Optional[HeartbeatDriver] = field(default=None, init=False, repr=False)
    _transport_closed: bool = field(default=False, init=False, repr=False)
    _close_requested: bool = field(default=False, init=False, repr=False)
    _heartbeat_sent_at: Optional[float] = field(default=None, init=False, repr=False)
    _latency: Optional[float] = field(default=None, init=False, repr=False)
    _frames_received: int = field(default=0, init=False, repr=False)
    _decode_errors: int = field(default=0, init=False, repr=False)
    _heartbeats_sent: int = field(default=0, init=False, repr=False)

    def __post_init__(self) -> None:
        queue_max = int(self.settings.transport_recv_queue_max or 0)
        self._inbox = asyncio.Queue(maxsize=max(0, queue_max))

    # Public API

    @property
    def state(self) -> SessionState:
        return self.tracker.state

    @property
    def heartbeat(self) -> Optional[HeartbeatDriver]:
        return self._heartbeat

    def request_close(self) -> None:
        """Ask the session to shut down without reconnecting."""

        self._close_requested = True
        try:
            self._inbox.put_nowait(_CloseRequested())
        except asyncio.QueueFull:
            LOGGER.debug("Inbox full; close request will be observed after the next frame")

    def stats(self) -> dict[str, Any]:
        stats: dict[str, Any] = {
            "state": self.tracker.state.value,
            "ready": self.tracker.ready,
            "last_sequence": self.tracker.last_sequence,
            "heartbeat_acknowledged": self.tracker.heartbeat_acknowledged,
            "frames_received": self._frames_received,
            "decode_errors": self._decode_errors,
            "heartbeats_sent": self._heartbeats_sent,
            "inbox": self._inbox.qsize(),
        }
        if self._latency is not None:
            stats["heartbeat_latency_ms"] = int(self._latency * 1000)
        if self.dispatcher is not None:
            stats["interactions_inflight"] = self.dispatcher.inflight()
        return stats

    async def run(self) -> SessionOutcome:
        """Connect, handshake and process frames until the connection ends."""

        resume = self.store.get()
        self.tracker.resume = resume
        base_url = resume.url if resume else self.gateway_url
        url = build_connect_url(base_url, self.settings.api_version)

        transport = self.transport_factory(self.settings)
        try:
            await transport.connect(url)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Gateway connect to %s failed: %s", url, exc)
            self._try_transition(SessionState.TERMINATED)
            return SessionOutcome(OutcomeKind.CONNECT_FAILED, reason=str(exc))

        self._transport = transport
        LOGGER.info("Gateway connected (%s)", "resuming" if resume else "fresh session")
        self._try_transition(SessionState.AWAITING_HELLO)
        self._reader_task = asyncio.create_task(self._read_loop(), name="gateway-reader")
        try:
            outcome = await self._consume()
        finally:
            await self._teardown()
        outcome.became_ready = self.tracker.ready
        LOGGER.info("Gateway session ended: %s (%s)", outcome.kind.value, outcome.reason or "-")
        return outcome

    # Inbox consumption

    async def _consume(self) -> SessionOutcome:
        while True:
            item = await self._inbox.get()
            if isinstance(item, _Frame):
                outcome = await self._handle_frame(item.raw)
            elif isinstance(item, _HeartbeatTick):
                outcome = await self._handle_heartbeat_tick()
            elif isinstance(item, _TransportLost):
                outcome = self._handle_transport_lost(item)
            else:
                outcome = await self._handle_close_request()
            if outcome is not None:
                return outcome
            if self._close_requested:
                return await self._handle_close_request()

    async def _read_loop(self) -> None:
        assert self._transport is not None
        while True:
            try:
                raw = await self._transport.receive()
            except asyncio.CancelledError:
                raise
            except TransportClosed as exc:
                await self._inbox.put(_TransportLost(exc.code, exc.reason))
                return
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Gateway receive failed: %s", exc)
                await self._inbox.put(_TransportLost(None, str(exc)))
                return
            await self._inbox.put(_Frame(raw))

    async def _handle_frame(self, raw: Union[str, bytes]) -> Optional[SessionOutcome]:
        self._frames_received += 1
        try:
            event = codec.decode(raw)
        except codec.UnsupportedEncoding as exc:
            self._decode_errors += 1
            LOGGER.warning("Dropping frame with unsupported encoding: %s", exc)
            return None
        except codec.DecodeError as exc:
            self._decode_errors += 1
            LOGGER.warning("Dropping undecodable frame: %s", exc)
            return None

        if self.tracker.state is SessionState.AWAITING_HELLO and not isinstance(event, codec.Hello):
            LOGGER.warning("Protocol anomaly: %s received before hello; ignoring", type(event).__name__)
            return None

        if isinstance(event, codec.Dispatch):
            await self._handle_dispatch(event)
            return None
        if isinstance(event, codec.Hello):
            await self._handle_hello(event)
            return None
        if isinstance(event, codec.HeartbeatAck):
            self._handle_heartbeat_ack()
            return None
        if isinstance(event, codec.HeartbeatRequest):
            LOGGER.debug("Server requested an immediate heartbeat")
            await self._send_heartbeat()
            return None
        if isinstance(event, codec.Reconnect):
            LOGGER.info("Server requested reconnect")
            await self._close(CLIENT_RECONNECT_CODE, "reconnect requested")
            return SessionOutcome(OutcomeKind.RESUME, close_code=int(CLIENT_RECONNECT_CODE), reason="reconnect requested")
        if isinstance(event, codec.InvalidSession):
            return await self._handle_invalid_session(event)
        LOGGER.debug("Ignoring unhandled event %s", event)
        return None

    async def _handle_hello(self, event: codec.Hello) -> None:
        LOGGER.debug("Hello received heartbeat_interval=%sms", event.heartbeat_interval_ms)
        if self._heartbeat is not None:
            LOGGER.warning("Repeated hello; restarting heartbeat driver")
            await self._heartbeat.stop()
        self.tracker.heartbeat_acknowledged = True
        self._heartbeat = HeartbeatDriver(event.heartbeat_interval_ms, self._signal_heartbeat, rng=self.rng)
        self._heartbeat.start()

        self._try_transition(SessionState.HANDSHAKING)
        token = self.settings.require_token()
        resume = self.tracker.resume
        if resume is not None:
            LOGGER.info("Resuming session %s at seq=%s", resume.session_id, resume.sequence)
            await self._send(codec.Resume(token=token, session_id=resume.session_id, sequence=resume.sequence))
        else:
            LOGGER.info("Identifying with intents=%s", self.settings.intents)
            properties = IdentifyProperties(
                os=self.settings.os_name,
                browser=self.settings.browser,
                device=self.settings.device,
            )
            await self._send(codec.Identify(token=token, intents=self.settings.intents, properties=properties))
        # Traffic is accepted as soon as the handshake frame is out; READY/RESUMED marks readiness.
        self._try_transition(SessionState.ACTIVE)

    async def _handle_dispatch(self, event: codec.Dispatch) -> None:
        self.store.update_sequence(event.sequence)
        self.tracker.last_sequence = event.sequence

        if event.event_name == READY_EVENT:
            try:
                ready = ReadyPayload.model_validate(event.payload)
            except ValidationError as exc:
                LOGGER.warning("READY payload missing resume data: %s", exc)
                return
            self.store.update_from_ready(ready.resume_gateway_url, ready.session_id)
            self.tracker.session_id = ready.session_id
            LOGGER.info(
                "Gateway ready session=%s user=%s application=%s",
                ready.session_id,
                ready.user_id,
                ready.application_id,
            )
            await self._mark_ready(resumed=False)
            return
        if event.event_name == RESUMED_EVENT:
            LOGGER.info("Gateway session resumed at seq=%s", event.sequence)
            await self._mark_ready(resumed=True)
            return
        if event.event_name == INTERACTION_CREATE_EVENT:
            self._route_interaction(event.payload)
            return
        LOGGER.debug("Dropping unhandled dispatch %s seq=%s", event.event_name, event.sequence)

    def _route_interaction(self, payload: Any) -> None:
        if self.dispatcher is None:
            LOGGER.debug("No interaction dispatcher configured; dropping interaction")
            return
        if not ApplicationCommandEvent.is_application_command(payload):
            LOGGER.debug("Ignoring non-command interaction")
            return
        try:
            command = ApplicationCommandEvent.model_validate(payload)
        except ValidationError as exc:
            LOGGER.warning("Dropping malformed application command: %s", exc)
            return
        LOGGER.debug("Dispatching /%s interaction=%s", command.command_name, command.id)
        self.dispatcher.dispatch(command)

    async def _handle_invalid_session(self, event: codec.InvalidSession) -> SessionOutcome:
        if event.resumable:
            LOGGER.info("Session invalidated (resumable); reconnecting")
            await self._close(CLIENT_RECONNECT_CODE, "invalid session")
            return SessionOutcome(
                OutcomeKind.RESUME,
                close_code=int(CLIENT_RECONNECT_CODE),
                reason="invalid session (resumable)",
                invalid_session=True,
            )
        LOGGER.warning("Session invalidated (not resumable); clearing resume state")
        self.store.clear()
        await self._close(CLIENT_RECONNECT_CODE, "invalid session")
        return SessionOutcome(
            OutcomeKind.FRESH,
            close_code=int(CLIENT_RECONNECT_CODE),
            reason="invalid session (not resumable)",
            invalid_session=True,
        )

    # Heartbeats

    def _signal_heartbeat(self) -> None:
        self._inbox.put_nowait(_HeartbeatTick())

    async def _handle_heartbeat_tick(self) -> Optional[SessionOutcome]:
        if self.tracker.state not in {SessionState.HANDSHAKING, SessionState.ACTIVE}:
            return None
        if not self.tracker.heartbeat_acknowledged:
            LOGGER.warning("Previous heartbeat was not acknowledged; reconnecting")
            await self._close(CLIENT_HEARTBEAT_TIMEOUT_CODE, "heartbeat not acknowledged")
            return SessionOutcome(
                OutcomeKind.RESUME,
                close_code=int(CLIENT_HEARTBEAT_TIMEOUT_CODE),
                reason="heartbeat not acknowledged",
            )
        await self._send_heartbeat()
        return None

    async def _send_heartbeat(self) -> None:
        self.tracker.heartbeat_acknowledged = False
        self._heartbeat_sent_at = asyncio.get_running_loop().time()
        if await self._send(codec.Heartbeat(sequence=self.tracker.last_sequence)):
            self._heartbeats_sent += 1

    def _handle_heartbeat_ack(self) -> None:
        self.tracker.heartbeat_acknowledged = True
        if self._heartbeat_sent_at is not None:
            self._latency = asyncio.get_running_loop().time() - self._heartbeat_sent_at
            LOGGER.debug("Heartbeat acknowledged latency=%.1fms", self._latency * 1000)

    # Termination

    def _handle_transport_lost(self, item: _TransportLost) -> SessionOutcome:
        self._transport_closed = True
        if self._close_requested:
            self.store.clear()
            return SessionOutcome(OutcomeKind.CLOSED, close_code=item.code, reason="closed by request")
        action = classify_close(item.code)
        label = describe(item.code)
        if action is CloseAction.FATAL:
            LOGGER.critical(
                "Gateway rejected the client configuration (%s %s); not reconnecting",
                label,
                item.reason,
            )
            self.store.clear()
            return SessionOutcome(OutcomeKind.FATAL, close_code=item.code, reason=item.reason or label)
        if action is CloseAction.FRESH:
            LOGGER.warning("Gateway closed the connection (%s %s); session cannot be resumed", label, item.reason)
            self.store.clear()
            return SessionOutcome(OutcomeKind.FRESH, close_code=item.code, reason=item.reason or label)
        LOGGER.warning("Gateway connection lost (%s %s); will resume", label, item.reason)
        return SessionOutcome(OutcomeKind.RESUME, close_code=item.code, reason=item.reason or label)

    async def _handle_close_request(self) -> SessionOutcome:
        LOGGER.info("Closing gateway session on request")
        # A normal closure invalidates the session server-side, so resuming is impossible afterwards.
        self.store.clear()
        await self._close(CLIENT_SHUTDOWN_CODE, "client shutdown")
        return SessionOutcome(OutcomeKind.CLOSED, close_code=int(CLIENT_SHUTDOWN_CODE), reason="closed by request")

    async def _close(self, code: int, reason: str) -> None:
        self._try_transition(SessionState.CLOSING)
        if self._heartbeat is not None:
            await self._heartbeat.stop()
        if self._transport is None or self._transport_closed:
            return
        self._transport_closed = True
        try:
            await self._transport.close(int(code), reason)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Suppress transport close error: %s", exc)

    async def _teardown(self) -> None:
        if self._heartbeat is not None:
            await self._heartbeat.stop()
            self._heartbeat = None
        reader = self._reader_task
        self._reader_task = None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if not self._transport_closed:
            await self._close(CLIENT_RECONNECT_CODE, "session terminated")
        self._transport = None
        self._try_transition(SessionState.TERMINATED)

    # Helpers

    async def _send(self, event: codec.OutboundEvent) -> bool:
        if self._transport is None or self._transport_closed:
            LOGGER.debug("Dropping %s; transport is closed", type(event).__name__)
            return False
        frame = codec.encode(event)
        size = len(frame.encode("utf-8"))
        if size > codec.MAX_FRAME_BYTES:
            LOGGER.warning(
                "Outbound %s frame is %s bytes (limit %s); the gateway may drop the connection",
                type(event).__name__,
                size,
                codec.MAX_FRAME_BYTES,
            )
        try:
            await self._transport.send(frame)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            # No retry: a dead connection is reported by the reader and the supervisor reconnects.
            LOGGER.warning("Failed to send %s: %s", type(event).__name__, exc)
            return False
        return True

    async def _mark_ready(self, *, resumed: bool) -> None:
        self.tracker.ready = True
        if self.on_ready is None:
            return
        try:
            result = self.on_ready(resumed)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001
            LOGGER.debug("Suppress session ready callback error", exc_info=True)

    def _try_transition(self, state: SessionState) -> None:
        if self.tracker.state is state:
            return
        try:
            self.tracker.transition(state)
        except ValueError:
            LOGGER.debug(
                "Ignoring invalid session transition %s -> %s",
                self.tracker.state.value,
                state.value,
            )
