"""
Collector: the batching core shared by every worker strategy.

Producers append committed traces to a bounded queue. Each tick swaps the
queue for an empty one under the lock, groups the removed traces by endpoint
into a Batch and hands it to the reporter. Delivery happens outside the
queue lock, so a slow collector never blocks ``submit``.
"""

import threading
from collections import deque
from typing import Deque, List, Optional, Union

from skylight.common.clock import Clock
from skylight.common.logger import debug, error, info, warning
from skylight.config import Config
from skylight.data.batch import Batch
from skylight.data.trace import TraceData
from skylight.exceptions import TraceError
from skylight.trace import Trace
from skylight.transport import DeliveryResult, Reporter


def seal(trace: Union[Trace, TraceData]) -> TraceData:
    if isinstance(trace, TraceData):
        return trace
    return trace.to_data()


class Collector:
    def __init__(
        self,
        config: Config,
        reporter: Optional[Reporter] = None,
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self.reporter = reporter or Reporter(config)
        self.clock = clock or Clock()
        self.max_queue_size = config.agent.max_queue_size

        self._queue: Deque[TraceData] = deque()
        self._lock = threading.Lock()
        self._deliver_lock = threading.Lock()
        self._stopping = threading.Event()

        self.dropped = 0
        self.delivered_batches = 0
        self.failed_batches = 0

    def submit(self, trace: Union[Trace, TraceData]) -> bool:
        """
        Queue a committed trace. When the queue is full the oldest trace is
        evicted. Returns False if the trace was not accepted.
        """
        if self._stopping.is_set():
            self._count_dropped(1)
            return False

        try:
            data = seal(trace)
        except TraceError as e:
            error(f"Rejected trace submission: {e.message}")
            return False

        if not self.config.source_locations:
            data = data.without_source_locations()

        with self._lock:
            if len(self._queue) >= self.max_queue_size:
                self._queue.popleft()
                self.dropped += 1
                evicted = True
            else:
                evicted = False
            self._queue.append(data)

        if evicted:
            warning(f"Collector queue full ({self.max_queue_size}); dropped oldest trace")
        return True

    def drain(self) -> List[TraceData]:
        """Atomically take every queued trace."""
        with self._lock:
            drained, self._queue = self._queue, deque()
        return list(drained)

    def tick(self) -> Optional[DeliveryResult]:
        """Drain the queue and deliver it as one batch. No-op when empty."""
        traces = self.drain()
        if not traces:
            return None

        if self._stopping.is_set():
            self._count_dropped(len(traces))
            return None

        batch = Batch.build(traces, timestamp=self.clock.wall())
        with self._deliver_lock:
            result = self.reporter.deliver(batch)

        with self._lock:
            if result.ok:
                self.delivered_batches += 1
            else:
                self.failed_batches += 1

        if result.ok:
            debug(f"Delivered batch of {len(traces)} trace(s)")
        return result

    def stop(self) -> int:
        """
        Refuse further submissions and discard whatever is still queued.
        A delivery already in flight gets no further retries; ``stop`` waits
        for it to finish before closing the reporter. Returns the number of
        traces discarded.
        """
        self._stopping.set()
        self.reporter.cancel()
        discarded = len(self.drain())
        if discarded:
            self._count_dropped(discarded)
            info(f"Collector stopped; discarded {discarded} queued trace(s)")
        with self._deliver_lock:
            self.reporter.close()
        return discarded

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    def _count_dropped(self, count: int):
        with self._lock:
            self.dropped += count
