"""Isolated execution of application command handlers."""

from .concurrency import InflightGuard
from .dispatch import DispatchResult, DispatchStatus, Fallback, Handler, InteractionDispatcher

__all__ = [
    "DispatchResult",
    "DispatchStatus",
    "Fallback",
    "Handler",
    "InflightGuard",
    "InteractionDispatcher",
]
