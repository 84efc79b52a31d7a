"""Public handle over a supervised gateway session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from tradegate.config import GatewaySettings
from tradegate.execution import Fallback, Handler, InteractionDispatcher
from tradegate.network.resume_store import ResumeState, ResumeStore
from tradegate.network.supervisor import DiscoverFn, SessionSupervisor
from tradegate.network.transport.base import BaseTransport

LOGGER = logging.getLogger(__name__)


class ResumeDiagnostics:
    """Read-only view of the resume store, plus an operator reset."""

    def __init__(self, store: ResumeStore) -> None:
        self._store = store

    def resume_state(self) -> Optional[ResumeState]:
        return self._store.get()

    def snapshot(self) -> dict[str, Any]:
        return self._store.snapshot()

    def clear_resume_state(self) -> None:
        self._store.clear()


@dataclass
class GatewayHandle:
    """Returned by ``start_session``; owns the supervisor task."""

    supervisor: SessionSupervisor
    dispatcher: InteractionDispatcher
    drain_timeout: float = 5.0
    _task: Optional[asyncio.Task[None]] = field(default=None, init=False, repr=False)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.supervisor.run(), name="gateway-supervisor")

    @property
    def store(self) -> ResumeDiagnostics:
        return ResumeDiagnostics(self.supervisor.store)

    @property
    def is_ready(self) -> bool:
        return self.supervisor.ready.is_set()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        await asyncio.wait_for(self.supervisor.ready.wait(), timeout=timeout)

    async def wait(self) -> None:
        """Block until the supervisor stops; re-raises ``FatalGatewayError``."""

        if self._task is None:
            return
        await asyncio.shield(self._task)

    async def close(self) -> None:
        """Close the gateway with a normal closure and stop reconnecting."""

        LOGGER.info("Gateway close requested")
        self.supervisor.close()
        try:
            if self._task is not None:
                await self._task
        finally:
            await self.dispatcher.drain(timeout=self.drain_timeout)

    def status(self) -> dict[str, Any]:
        status = self.supervisor.status()
        status["interactions_inflight"] = self.dispatcher.inflight()
        status["running"] = self._task is not None and not self._task.done()
        return status


def launch_session(
    settings: GatewaySettings,
    handler: Handler,
    *,
    discover: DiscoverFn,
    transport_factory: Callable[[GatewaySettings], BaseTransport],
    fallback: Optional[Fallback] = None,
    store: Optional[ResumeStore] = None,
) -> GatewayHandle:
    """Start a supervisor task for ``handler`` and return its handle."""

    settings.require_token()
    dispatcher = InteractionDispatcher(
        handler,
        fallback=fallback,
        timeout=float(settings.interaction_timeout_seconds),
        max_workers=int(settings.interaction_max_workers),
        max_inflight=int(settings.interaction_max_inflight),
    )
    supervisor = SessionSupervisor(
        settings=settings,
        store=store or ResumeStore(),
        transport_factory=transport_factory,
        discover=discover,
        dispatcher=dispatcher,
    )
    handle = GatewayHandle(supervisor=supervisor, dispatcher=dispatcher)
    handle.start()
    return handle
