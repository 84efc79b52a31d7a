"""Restarts gateway sessions until closed on request or rejected as misconfigured."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from tradegate.config import GatewaySettings
from tradegate.errors import FatalGatewayError, GatewayError
from tradegate.execution import InteractionDispatcher
from tradegate.network.resume_store import ResumeStore
from tradegate.network.session import OutcomeKind, Session, SessionOutcome
from tradegate.network.transport.base import BaseTransport
from tradegate.rest import ApiError, ApiUnauthorizedError

LOGGER = logging.getLogger(__name__)

DiscoverFn = Callable[[], Awaitable[str]]


@dataclass
class SessionSupervisor:
    """Runs ``Session`` instances back to back.

    Each restart builds a brand new ``Session`` (and with it a new heartbeat
    driver); only the ``ResumeStore`` carries over, and it is re-read every
    time to choose between resume and identify.
    """

    settings: GatewaySettings
    store: ResumeStore
    transport_factory: Callable[[GatewaySettings], BaseTransport]
    discover: DiscoverFn
    dispatcher: Optional[InteractionDispatcher] = None
    rng: random.Random = field(default_factory=random.Random)

    ready: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    restarts: int = field(default=0, init=False)
    last_outcome: Optional[SessionOutcome] = field(default=None, init=False)
    _session: Optional[Session] = field(default=None, init=False, repr=False)
    _closing: bool = field(default=False, init=False, repr=False)
    _wake: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)
    _gateway_url: Optional[str] = field(default=None, init=False, repr=False)

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def closing(self) -> bool:
        return self._closing

    def close(self) -> None:
        """Stop after the current session closes; no reconnect."""

        self._closing = True
        self._wake.set()
        if self._session is not None:
            self._session.request_close()

    def status(self) -> dict[str, Any]:
        status: dict[str, Any] = {
            "ready": self.ready.is_set(),
            "restarts": self.restarts,
            "closing": self._closing,
            "resume": self.store.snapshot(),
        }
        if self.last_outcome is not None:
            status["last_outcome"] = self.last_outcome.kind.value
            status["last_close_code"] = self.last_outcome.close_code
        if self._session is not None:
            status["session"] = self._session.stats()
        return status

    async def run(self) -> None:
        """Supervise sessions; raises ``FatalGatewayError`` on configuration faults."""

        failures = 0
        delay = 0.0
        while not self._closing:
            if delay > 0:
                LOGGER.info("Reconnecting to gateway in %.2fs", delay)
                await self._pause(delay)
                if self._closing:
                    break

            try:
                gateway_url = await self._resolve_gateway_url()
            except ApiUnauthorizedError as exc:
                LOGGER.critical("Gateway discovery rejected the token: %s", exc)
                raise FatalGatewayError(f"Gateway discovery rejected the token: {exc}") from exc
            except ApiError as exc:
                failures += 1
                self._check_restart_budget(failures)
                delay = self._backoff_delay(failures)
                LOGGER.warning("Gateway discovery failed (attempt %s): %s", failures, exc)
                continue

            outcome = await self._run_session(gateway_url)
            self.last_outcome = outcome
            if outcome.kind is OutcomeKind.CLOSED or self._closing:
                break
            if outcome.kind is OutcomeKind.FATAL:
                raise FatalGatewayError(
                    f"Gateway closed the connection with {outcome.close_code}: {outcome.reason}",
                    close_code=outcome.close_code,
                )

            self.restarts += 1
            if outcome.became_ready:
                failures = 0
                delay = 0.0
            else:
                failures += 1
                self._check_restart_budget(failures)
                delay = self._backoff_delay(failures)
            if outcome.invalid_session and outcome.kind is OutcomeKind.FRESH:
                delay = max(
                    delay,
                    self.rng.uniform(
                        self.settings.invalid_session_delay_min_seconds,
                        self.settings.invalid_session_delay_max_seconds,
                    ),
                )
        LOGGER.info("Gateway supervisor stopped")

    async def _run_session(self, gateway_url: str) -> SessionOutcome:
        session = Session(
            settings=self.settings,
            transport_factory=self.transport_factory,
            store=self.store,
            gateway_url=gateway_url,
            dispatcher=self.dispatcher,
            on_ready=self._on_session_ready,
            rng=self.rng,
        )
        self._session = session
        if self._closing:
            session.request_close()
        try:
            return await session.run()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            # Restart both units: resume state first, then a fresh session.
            LOGGER.exception("Gateway session crashed; clearing resume state")
            self.store.clear()
            return SessionOutcome(OutcomeKind.FRESH, reason=f"session crashed: {exc!r}")
        finally:
            self._session = None
            self.ready.clear()

    async def _resolve_gateway_url(self) -> str:
        if self.settings.gateway_url:
            return self.settings.gateway_url
        if self._gateway_url is None and self.store.get() is None:
            self._gateway_url = await self.discover()
            LOGGER.info("Using gateway %s", self._gateway_url)
        return self._gateway_url or ""

    def _on_session_ready(self, resumed: bool) -> None:
        self.ready.set()

    def _backoff_delay(self, attempt: int) -> float:
        base = float(self.settings.reconnect_base_delay_seconds)
        cap = float(self.settings.reconnect_max_delay_seconds)
        jitter = float(self.settings.reconnect_jitter)
        delay = min(cap, base * (2 ** (attempt - 1)))
        factor = self.rng.uniform(1 - jitter, 1 + jitter)
        return max(0.1, delay * factor)

    def _check_restart_budget(self, failures: int) -> None:
        limit = int(self.settings.max_restarts or 0)
        if limit and failures > limit:
            raise GatewayError(f"Gateway unreachable after {failures} consecutive attempts")

    async def _pause(self, delay: float) -> None:
        self._wake.clear()
        if self._closing:
            return
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
