"""Heartbeat driver: asks the owning session to send a heartbeat on cadence.

The driver never touches session state. It only calls ``signal`` (which
enqueues a tick into the session inbox); the session decides whether the
previous beat was acknowledged and what to send.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

MIN_SEND_INTERVAL_MS = 500
SEND_INTERVAL_FACTOR = 0.98


def compute_send_interval_ms(interval_ms: int) -> int:
    """Beat slightly early to absorb inbox queuing delay, but never below the floor."""

    return max(MIN_SEND_INTERVAL_MS, math.floor(interval_ms * SEND_INTERVAL_FACTOR))


def compute_first_delay_ms(interval_ms: int, rng: Optional[random.Random] = None) -> float:
    """Uniform jitter in ``[0, interval_ms]`` so reconnecting clients spread out."""

    value = (rng or random).uniform(0, interval_ms)
    return max(1.0, value)


@dataclass
class HeartbeatTimerState:
    interval_ms: int
    send_interval_ms: int
    jitter_applied: bool = False


class HeartbeatDriver:
    """Recurring heartbeat signal bound to one session's lifetime."""

    def __init__(
        self,
        interval_ms: int,
        signal: Callable[[], None],
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.state = HeartbeatTimerState(
            interval_ms=interval_ms,
            send_interval_ms=compute_send_interval_ms(interval_ms),
        )
        self._signal = signal
        self._rng = rng
        self._task: Optional[asyncio.Task[None]] = None
        self.beats = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="gateway-heartbeat")

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        first_delay = compute_first_delay_ms(self.state.interval_ms, self._rng) / 1000.0
        send_interval = self.state.send_interval_ms / 1000.0
        LOGGER.debug(
            "Heartbeat driver started interval=%sms send_interval=%sms first_in=%.3fs",
            self.state.interval_ms,
            self.state.send_interval_ms,
            first_delay,
        )
        # Deadlines are absolute so slow signal handling does not accumulate drift.
        next_at = loop.time() + first_delay
        while True:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            self.state.jitter_applied = True
            self.beats += 1
            try:
                self._signal()
            except Exception as exc:  # noqa: BLE001
                LOGGER.warning("Heartbeat signal could not be delivered: %s", exc)
            next_at += send_interval
