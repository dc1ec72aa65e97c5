"""
securetoken/clock.py -- Wall clock collaborators.

A clock is any zero-argument callable returning an integer count of
nanoseconds since the Unix epoch. Tokener takes one as a constructor argument
so tests can freeze time without patching module globals.
"""

from __future__ import annotations

import time
from datetime import timedelta


def system_clock() -> int:
    """Return the current wall clock time in nanoseconds since the epoch."""
    return time.time_ns()


def to_nanoseconds(delta: timedelta | int | float) -> int:
    """Convert a timedelta (or a number of seconds) to integer nanoseconds.

    timedelta carries microsecond resolution, so the conversion is exact.
    Plain numbers are read as seconds.
    """
    if isinstance(delta, timedelta):
        return ((delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds) * 1_000
    if isinstance(delta, bool) or not isinstance(delta, (int, float)):
        raise TypeError(f"expected timedelta or seconds, got {type(delta).__name__}")
    return round(delta * 1_000_000_000)


class FrozenClock:
    """A clock that only moves when told to.

    Usage:
        clock = FrozenClock(1_000_000_000)
        tokener = Tokener(key, timedelta(minutes=1), clock=clock)
        token = tokener.seal(b"data")
        clock.advance(timedelta(minutes=1, microseconds=1))
    """

    def __init__(self, now_ns: int = 0) -> None:
        self.now_ns = now_ns

    def __call__(self) -> int:
        return self.now_ns

    def advance(self, delta: timedelta | int) -> None:
        """Move the clock forward. Integers are nanoseconds, not seconds."""
        if isinstance(delta, timedelta):
            self.now_ns += to_nanoseconds(delta)
        else:
            self.now_ns += delta

    def __repr__(self) -> str:
        return f"FrozenClock({self.now_ns})"
