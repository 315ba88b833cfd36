from skylight.data.span import Span
from skylight.data.trace import TraceData
from skylight.data.batch import Batch, Endpoint

__all__ = [
    "Span",
    "TraceData",
    "Batch",
    "Endpoint",
]
