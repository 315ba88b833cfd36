"""
Instrumenter: ties configuration, clock, worker and GC probe together and
tracks the trace being built in the current execution context.
"""

import contextvars
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from skylight.common.clock import Clock
from skylight.common.gc_probe import GCProbe, GCWindow
from skylight.common.logger import (
    debug,
    error,
    info,
    start_logging,
    trace_logging_context,
)
from skylight.config import Config
from skylight.constants import GC_CATEGORY
from skylight.exceptions import TraceError
from skylight.trace import Trace
from skylight.worker import build_worker
from skylight.worker.interface import Worker

current_trace_var = contextvars.ContextVar[Optional[Trace]](
    "skylight_current_trace", default=None
)


class Instrumenter:
    def __init__(
        self,
        config: Optional[Config] = None,
        worker: Optional[Worker] = None,
        clock: Optional[Clock] = None,
        gc_probe: Optional[GCProbe] = None,
    ):
        self.config = config or Config()
        self.clock = clock or Clock()
        self.worker = worker or build_worker(self.config, clock=self.clock)
        self.gc_probe = gc_probe or (GCProbe() if self.config.gc.enabled else None)
        self.is_hidden = self.config.hidden_predicate()
        self.discarded_traces = 0
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> "Instrumenter":
        if self._started:
            return self
        start_logging(path=self.config.log, level=self.config.log_level)
        if self.gc_probe is not None:
            self.gc_probe.enable()
        self.worker.spawn()
        self._started = True
        info(f"Instrumenter started with {self.config.agent.strategy} worker")
        return self

    def flush(self):
        self.worker.flush()

    def shutdown(self):
        """Deliver what is queued, then stop the worker."""
        if not self._started:
            return
        self._started = False
        self.worker.flush()
        self.worker.stop()
        if self.gc_probe is not None:
            self.gc_probe.disable()
        info("Instrumenter shut down")

    def get_current_trace(self) -> Optional[Trace]:
        return current_trace_var.get()

    @contextmanager
    def trace(
        self,
        endpoint: Optional[str] = None,
        uuid: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ) -> Generator[Trace, None, None]:
        """
        Build a trace for the enclosed block and submit it when the block
        exits. Exceptions from the block propagate unchanged.
        """
        trace = Trace(
            endpoint=endpoint,
            clock=self.clock,
            is_hidden=self.is_hidden,
            uuid=uuid,
        )
        if metadata:
            trace.metadata.update(metadata)

        gc_window = GCWindow(self.gc_probe) if self.gc_probe is not None else None
        token = current_trace_var.set(trace)
        try:
            with trace_logging_context(trace):
                yield trace
        finally:
            current_trace_var.reset(token)
            self._finish(trace, gc_window)

    @contextmanager
    def instrument(
        self,
        category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        source_file: Optional[str] = None,
        source_line: Optional[int] = None,
    ) -> Generator[Optional[Trace], None, None]:
        """Time the enclosed block as a span of the current trace, if any."""
        trace = current_trace_var.get()
        if trace is None or trace.committed:
            yield None
            return

        trace.start(
            self.clock.now(),
            category,
            title,
            description,
            source_file=source_file,
            source_line=source_line,
        )
        try:
            yield trace
        finally:
            try:
                trace.stop(self.clock.now())
            except TraceError as e:
                error(f"Could not close span {category!r}: {e.message}")

    def record(
        self,
        category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ):
        """Record an instantaneous event on the current trace, if any."""
        trace = current_trace_var.get()
        if trace is None or trace.committed:
            return
        trace.record(self.clock.now(), category, title, description)

    def _finish(self, trace: Trace, gc_window: Optional[GCWindow]):
        try:
            if gc_window is not None:
                self._record_gc(trace, gc_window)
            trace.commit()
        except TraceError as e:
            self.discarded_traces += 1
            error(f"Discarding trace for {trace.endpoint}: {e.message}")
            return

        try:
            self.worker.submit(trace)
        except Exception as e:
            error(f"Failed to submit trace for {trace.endpoint}: {e}")
            return
        debug(f"Submitted trace {trace.uuid} ({len(trace.spans)} spans)")

    def _record_gc(self, trace: Trace, gc_window: GCWindow):
        elapsed = gc_window.elapsed()
        if elapsed <= 0 or trace.depth:
            return
        now = self.clock.now()
        trace.start(max(trace.start_time, now - elapsed), GC_CATEGORY)
        trace.stop(now)


# The process-wide instrumenter, set only by the outermost composition point
# (``skylight.start``).
_default_instrumenter: Optional[Instrumenter] = None


def get_default_instrumenter() -> Optional[Instrumenter]:
    return _default_instrumenter


def set_default_instrumenter(instrumenter: Optional[Instrumenter]):
    global _default_instrumenter
    _default_instrumenter = instrumenter
