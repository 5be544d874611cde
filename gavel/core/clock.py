"""
Clock - Time source for deadline checks.

The engine never sleeps or schedules: every operation reads "now" once
from a Clock and compares it against the deadline.
"""

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Supplies a non-decreasing integer timestamp in seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall clock, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock driven by the caller.

    Used by tests and the demo to step through an auction deterministically.
    Time may only move forward.
    """

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move time forward by `seconds` and return the new reading."""
        if seconds < 0:
            raise ValueError(f"Clock cannot move backwards ({seconds}s)")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> int:
        """Jump to an absolute timestamp (not earlier than the current one)."""
        if timestamp < self._now:
            raise ValueError(f"Clock cannot move backwards: {timestamp} < {self._now}")
        self._now = timestamp
        return self._now
