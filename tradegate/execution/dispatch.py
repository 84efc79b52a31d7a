"""Interaction dispatch worker.

Every application command runs in its own task, unlinked from the session
loop, with a hard deadline below the remote response window. A handler that
raises or overruns the deadline triggers the fallback exactly once, in time
for the fallback to still answer the interaction.
"""

from __future__ import annotations

import asyncio
import contextvars
import enum
import functools
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Set, Union

from tradegate.models import ApplicationCommandEvent

from .concurrency import InflightGuard

LOGGER = logging.getLogger(__name__)

Handler = Callable[[ApplicationCommandEvent], Union[Awaitable[None], None]]
Fallback = Callable[[ApplicationCommandEvent, str, Optional[BaseException]], Union[Awaitable[None], None]]


class DispatchStatus(enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    DUPLICATE = "duplicate"


@dataclass
class DispatchResult:
    status: DispatchStatus
    error: Optional[BaseException] = None
    abandoned: bool = False


class InteractionDispatcher:
    """Spawns one isolated, deadline-bounded task per application command."""

    def __init__(
        self,
        handler: Handler,
        *,
        fallback: Optional[Fallback] = None,
        timeout: float = 2.5,
        guard: Optional[InflightGuard] = None,
        max_workers: int = 8,
        max_inflight: int = 0,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if max_workers <= 0:
            raise ValueError("max_workers must be positive")
        self._handler = handler
        self._fallback = fallback
        self._timeout = float(timeout)
        self._guard = guard or InflightGuard()
        self._tasks: Set[asyncio.Task[DispatchResult]] = set()
        self._max_workers = int(max_workers)
        # Sync handlers run on a private pool, never the loop's default executor.
        self._executor: Optional[ThreadPoolExecutor] = None
        self._semaphore: Optional[asyncio.Semaphore] = asyncio.Semaphore(max_inflight) if max_inflight > 0 else None

    @property
    def timeout(self) -> float:
        return self._timeout

    def inflight(self) -> int:
        return len(self._tasks)

    def dispatch(self, event: ApplicationCommandEvent) -> asyncio.Task[DispatchResult]:
        """Start handling ``event`` without waiting for it."""

        task = asyncio.create_task(self._supervise(event), name=f"interaction-{event.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight workers; cancel whatever is still running after ``timeout``."""

        tasks = list(self._tasks)
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        executor = self._executor
        self._executor = None
        if executor is not None:
            # Threads stuck in a handler cannot be interrupted; do not wait for them.
            executor.shutdown(wait=False, cancel_futures=True)

    async def _supervise(self, event: ApplicationCommandEvent) -> DispatchResult:
        if not self._guard.claim(event.id):
            LOGGER.info("Interaction %s already in flight; ignoring redelivery", event.id)
            return DispatchResult(DispatchStatus.DUPLICATE)
        threaded = not inspect.iscoroutinefunction(self._handler)
        worker = asyncio.create_task(self._invoke(event, threaded), name=f"interaction-handler-{event.id}")
        try:
            done, _ = await asyncio.wait({worker}, timeout=self._timeout)
            if worker in done:
                error = self._failure_of(worker)
                if error is None:
                    return DispatchResult(DispatchStatus.COMPLETED)
                LOGGER.error(
                    "Handler for /%s (interaction %s) failed: %r",
                    event.command_name,
                    event.id,
                    error,
                    exc_info=error,
                )
                await self._run_fallback(event, "error", error)
                return DispatchResult(DispatchStatus.FAILED, error=error)

            LOGGER.warning(
                "Handler for /%s (interaction %s) exceeded %.2fs; cancelling",
                event.command_name,
                event.id,
                self._timeout,
            )
            worker.cancel()
            timeout_error = asyncio.TimeoutError(f"handler exceeded {self._timeout:.2f}s")
            await self._run_fallback(event, "timeout", timeout_error)
            done, _ = await asyncio.wait({worker}, timeout=self._timeout)
            abandoned = worker not in done
            if abandoned:
                worker.add_done_callback(_discard_outcome)
                LOGGER.warning(
                    "Handler for interaction %s ignored cancellation for %.2fs; forcefully abandoning it",
                    event.id,
                    self._timeout,
                )
            elif threaded:
                LOGGER.warning(
                    "Handler for interaction %s runs in a worker thread which cannot be interrupted; "
                    "its result will be discarded",
                    event.id,
                )
            return DispatchResult(DispatchStatus.TIMED_OUT, error=timeout_error, abandoned=abandoned)
        except asyncio.CancelledError:
            worker.cancel()
            raise
        finally:
            self._guard.release(event.id)

    async def _invoke(self, event: ApplicationCommandEvent, threaded: bool) -> None:
        if self._semaphore is None:
            await self._call_handler(event, threaded)
            return
        async with self._semaphore:
            await self._call_handler(event, threaded)

    async def _call_handler(self, event: ApplicationCommandEvent, threaded: bool) -> None:
        if threaded:
            loop = asyncio.get_running_loop()
            call = functools.partial(contextvars.copy_context().run, self._handler, event)
            result = await loop.run_in_executor(self._ensure_executor(), call)
        else:
            result = self._handler(event)
        if inspect.isawaitable(result):
            await result

    def _ensure_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="interaction-handler",
            )
        return self._executor

    @staticmethod
    def _failure_of(worker: asyncio.Task[None]) -> Optional[BaseException]:
        if worker.cancelled():
            return asyncio.CancelledError("handler task was cancelled")
        return worker.exception()

    async def _run_fallback(self, event: ApplicationCommandEvent, reason: str, error: Optional[BaseException]) -> None:
        if self._fallback is None:
            return
        try:
            result = self._fallback(event, reason, error)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            LOGGER.exception("Fallback for interaction %s failed", event.id)


def _discard_outcome(task: asyncio.Task[None]) -> None:
    if not task.cancelled() and task.exception() is not None:
        LOGGER.debug("Abandoned handler finished with %r", task.exception())
