"""
Embedded strategy: the collector loop runs on a daemon thread inside the host
process. Buffered traces share the host's fate.
"""

import atexit
import threading
import warnings
from typing import Optional, Union

from skylight.common.clock import Clock
from skylight.common.logger import debug, info
from skylight.config import Config
from skylight.data.trace import TraceData
from skylight.trace import Trace
from skylight.transport import Reporter
from skylight.worker.collector import Collector
from skylight.worker.interface import Worker


class EmbeddedWorker(Worker):
    def __init__(
        self,
        config: Config,
        reporter: Optional[Reporter] = None,
        clock: Optional[Clock] = None,
        collector: Optional[Collector] = None,
    ):
        self.config = config
        self.interval = config.agent.interval
        self.collector = collector or Collector(config, reporter=reporter, clock=clock)

        self._thread: Optional[threading.Thread] = None
        self._shutdown_event = threading.Event()
        self._spawn_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def spawn(self) -> None:
        with self._spawn_lock:
            if self.running or self._shutdown_event.is_set():
                return
            self._thread = threading.Thread(
                target=self._worker_loop, daemon=True, name="SkylightCollector"
            )
            self._thread.start()
            # Register cleanup on exit
            atexit.register(self.stop)
            info(f"Embedded worker started (interval={self.interval}s)")

    def submit(self, trace: Union[Trace, TraceData]) -> bool:
        return self.collector.submit(trace)

    def flush(self) -> None:
        """Deliver everything queued so far from the calling thread."""
        if self.collector.stopping:
            return
        try:
            self.collector.tick()
        except Exception as e:
            warnings.warn(f"Error during flush: {e}")

    def stop(self) -> None:
        if self._shutdown_event.is_set():
            return
        # Signal shutdown before touching the queue so no new delivery starts
        self._shutdown_event.set()
        self.collector.stop()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.report.timeout + self.interval)
        self._thread = None
        atexit.unregister(self.stop)
        debug("Embedded worker stopped")

    def _worker_loop(self):
        """Main loop: one drain and delivery per interval until shutdown."""
        while not self._shutdown_event.wait(self.interval):
            try:
                self.collector.tick()
            except Exception as e:
                warnings.warn(f"Error in collector worker loop: {e}")
