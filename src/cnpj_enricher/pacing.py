"""
Request pacing.

The public CNPJ API allows only a few requests per minute, so consecutive
lookups are separated by a fixed interval. Waiting goes through a `Clock` so
tests can substitute a virtual one.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Minimal time source used for pacing and rate-limit cooldowns."""

    def monotonic(self) -> float:
        ...

    def sleep(self, seconds: float) -> None:
        ...

    def wait(self, event: threading.Event, seconds: float) -> bool:
        """Sleep up to `seconds`, returning early (True) once `event` is set."""
        ...


class SystemClock:
    """Clock backed by the `time` module."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

    def wait(self, event: threading.Event, seconds: float) -> bool:
        return event.wait(seconds)


class FixedIntervalPacer:
    """
    Keeps a fixed gap between the end of one lookup and the start of the next.

    Call `mark()` when an identifier has been fully processed and `wait()`
    before starting the next one. The first `wait()` of a run returns
    immediately.

    Parameters:
        interval: Gap in seconds
        clock: Time source (defaults to SystemClock)
    """

    def __init__(self, interval: float, clock: Clock | None = None) -> None:
        self.interval = float(interval)
        self.clock = clock or SystemClock()
        self._last: float | None = None

    def mark(self) -> None:
        self._last = self.clock.monotonic()

    def wait(self, stop: threading.Event | None = None) -> float:
        """
        Sleep until the interval has elapsed; returns the seconds waited.

        When `stop` is given the wait ends as soon as it is set.
        """
        if self._last is None or self.interval <= 0:
            return 0.0
        remaining = (self._last + self.interval) - self.clock.monotonic()
        if remaining <= 0:
            return 0.0
        if stop is None:
            self.clock.sleep(remaining)
        else:
            self.clock.wait(stop, remaining)
        return remaining
