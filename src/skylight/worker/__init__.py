from typing import Optional

from skylight.common.clock import Clock
from skylight.config import Config
from skylight.transport import Reporter
from skylight.worker.collector import Collector
from skylight.worker.embedded import EmbeddedWorker
from skylight.worker.interface import Worker
from skylight.worker.standalone import StandaloneWorker


def build_worker(
    config: Config,
    reporter: Optional[Reporter] = None,
    clock: Optional[Clock] = None,
) -> Worker:
    """Create the worker selected by ``config.agent.strategy``."""
    strategy = config.agent.strategy
    if strategy == "standalone":
        return StandaloneWorker(config)
    if strategy == "embedded":
        return EmbeddedWorker(config, reporter=reporter, clock=clock)
    raise ValueError(f"Unknown worker strategy: {strategy}")


__all__ = [
    "Collector",
    "EmbeddedWorker",
    "StandaloneWorker",
    "Worker",
    "build_worker",
]
