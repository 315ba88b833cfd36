# Import key components that should be publicly accessible
from contextlib import nullcontext
from typing import Optional

from skylight.config import Config
from skylight.exceptions import TraceError
from skylight.helpers import instrument_class_method, instrument_method
from skylight.instrumenter import (
    Instrumenter,
    get_default_instrumenter,
    set_default_instrumenter,
)
from skylight.trace import Trace


def start(config: Optional[Config] = None, **kwargs) -> Instrumenter:
    """
    Start the process-wide instrumenter. Calling it again while one is running
    returns the running instrumenter.
    """
    instrumenter = get_default_instrumenter()
    if instrumenter is not None and instrumenter.started:
        return instrumenter
    instrumenter = Instrumenter(config or Config.from_env(), **kwargs)
    set_default_instrumenter(instrumenter)
    return instrumenter.start()


def shutdown():
    instrumenter = get_default_instrumenter()
    if instrumenter is None:
        return
    instrumenter.shutdown()
    set_default_instrumenter(None)


def trace(endpoint: Optional[str] = None, **kwargs):
    instrumenter = get_default_instrumenter()
    if instrumenter is None:
        return nullcontext()
    return instrumenter.trace(endpoint, **kwargs)


def instrument(category: str, title: Optional[str] = None, description: Optional[str] = None):
    instrumenter = get_default_instrumenter()
    if instrumenter is None:
        return nullcontext()
    return instrumenter.instrument(category, title, description)


def record(category: str, title: Optional[str] = None, description: Optional[str] = None):
    instrumenter = get_default_instrumenter()
    if instrumenter is not None:
        instrumenter.record(category, title, description)


__all__ = [
    "Config",
    "Instrumenter",
    "Trace",
    "TraceError",
    "instrument",
    "instrument_class_method",
    "instrument_method",
    "record",
    "shutdown",
    "start",
    "trace",
]
