"""Cancellable delayed callbacks used for auto-advance."""

from __future__ import annotations

from threading import Timer
from typing import Callable, Protocol


class ScheduledCall(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ScheduledCall:
        ...


class ThreadingScheduler:
    """Runs callbacks on daemon ``threading.Timer`` threads."""

    def schedule(self, delay_seconds: float, callback: Callable[[], None]) -> ScheduledCall:
        timer = Timer(delay_seconds, callback)
        timer.name = "AutoAdvanceTimer"
        timer.daemon = True
        timer.start()
        return timer
