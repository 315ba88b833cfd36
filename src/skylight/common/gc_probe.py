"""
GC sampling probe.

Measures time spent inside the cyclic garbage collector by hooking
``gc.callbacks``. The instrumenter reads the accumulated pause time at the end
of each trace and reports it as a ``noise.gc`` span.
"""

import gc
import threading
import time


class GCProbe:
    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0.0
        self._started_at: float | None = None
        self._enabled = False

    def enable(self):
        if self._enabled:
            return
        gc.callbacks.append(self._callback)
        self._enabled = True

    def disable(self):
        if not self._enabled:
            return
        try:
            gc.callbacks.remove(self._callback)
        except ValueError:
            pass
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def total_time(self) -> float:
        """Seconds spent in GC since the last ``clear``."""
        with self._lock:
            return self._total

    def clear(self):
        with self._lock:
            self._total = 0.0

    def _callback(self, phase: str, info: dict):
        if phase == "start":
            self._started_at = time.perf_counter()
        elif phase == "stop" and self._started_at is not None:
            elapsed = time.perf_counter() - self._started_at
            self._started_at = None
            with self._lock:
                self._total += elapsed


class GCWindow:
    """
    Tracks GC time for a single trace: the probe total at the time the
    window was opened is subtracted from the total when it is read.
    """

    def __init__(self, probe: GCProbe):
        self._probe = probe
        self._baseline = probe.total_time()

    def elapsed(self) -> float:
        return max(0.0, self._probe.total_time() - self._baseline)
