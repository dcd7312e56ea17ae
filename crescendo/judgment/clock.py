"""Session-elapsed time with pause accounting."""

import time
from typing import Callable, Optional


class ManualClock:
    """A callable time source that only moves when told to. Used for replays and tests."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start

    def __call__(self) -> float:
        return self._now

    def set(self, now: float) -> None:
        self._now = now

    def advance(self, seconds: float) -> None:
        self._now += seconds


class SessionClock:
    """Elapsed time since start(), excluding any time spent paused.

    Judgment windows and smoothing timers read this clock, so nothing can
    expire while the session is paused.
    """

    def __init__(self, time_source: Callable[[], float] = time.monotonic) -> None:
        self._time_source = time_source
        self._started_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0

    @property
    def started(self) -> bool:
        return self._started_at is not None

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    @property
    def paused_total(self) -> float:
        return self._paused_total

    def start(self) -> None:
        self._started_at = self._time_source()
        self._paused_at = None
        self._paused_total = 0.0

    def pause(self) -> None:
        if self.started and not self.is_paused:
            self._paused_at = self._time_source()

    def resume(self) -> None:
        if self.is_paused:
            self._paused_total += self._time_source() - self._paused_at
            self._paused_at = None

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        now = self._paused_at if self._paused_at is not None else self._time_source()
        return now - self._started_at - self._paused_total
