"""
Time sources for the agent.

Span timestamps are fractional seconds read from a monotonic clock; batch
timestamps are whole wall-clock seconds.
"""

import time


class Clock:
    """Monotonic clock. Subclass or mock ``now`` to control time in tests."""

    def now(self) -> float:
        return time.monotonic()

    def wall(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: float = 0.0, wall_start: int | None = None):
        self._start = float(start)
        self._now = float(start)
        self._wall_start = wall_start if wall_start is not None else int(time.time())

    def now(self) -> float:
        return self._now

    def wall(self) -> int:
        return self._wall_start + int(self._now - self._start)

    def advance(self, seconds: float) -> float:
        self._now += seconds
        return self._now
