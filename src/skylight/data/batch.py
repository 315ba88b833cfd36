import json
import zlib
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, ValidationError

from skylight.constants import DEFAULT_ENDPOINT, REPORT_PROTOCOL_VERSION
from skylight.data.trace import TraceData
from skylight.exceptions import ProtocolError


class Endpoint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    traces: List[TraceData] = []

    def model_dump(self, **kwargs):
        return {
            "name": self.name,
            "traces": [trace.model_dump() for trace in self.traces],
        }


class Batch(BaseModel):
    """
    A delivery unit: every trace drained in one interval, grouped by endpoint.

    Endpoints appear in the order their first trace was submitted and traces
    keep submission order within an endpoint.
    """

    model_config = ConfigDict(extra="ignore")

    timestamp: int
    endpoints: List[Endpoint] = []

    @classmethod
    def build(cls, traces: Iterable[TraceData], timestamp: int) -> "Batch":
        groups: dict[str, List[TraceData]] = {}
        for trace in traces:
            groups.setdefault(trace.endpoint or DEFAULT_ENDPOINT, []).append(trace)
        return cls(
            timestamp=timestamp,
            endpoints=[Endpoint(name=name, traces=group) for name, group in groups.items()],
        )

    @property
    def trace_count(self) -> int:
        return sum(len(endpoint.traces) for endpoint in self.endpoints)

    def model_dump(self, **kwargs):
        return {
            "version": REPORT_PROTOCOL_VERSION,
            "timestamp": self.timestamp,
            "endpoints": [endpoint.model_dump() for endpoint in self.endpoints],
        }


def encode_batch(batch: Batch, deflate: bool = False) -> bytes:
    """Serialize a batch to the report wire format."""
    body = json.dumps(batch.model_dump(), separators=(",", ":")).encode("utf-8")
    if deflate:
        body = zlib.compress(body)
    return body


def decode_batch(body: bytes, deflated: bool = False) -> Batch:
    """
    Parse a report body. Unknown fields are ignored; an unknown protocol
    version is rejected.
    """
    try:
        if deflated:
            body = zlib.decompress(body)
        payload = json.loads(body)
    except (zlib.error, ValueError) as e:
        raise ProtocolError(f"Malformed report body: {e}")

    if not isinstance(payload, dict):
        raise ProtocolError("Report body must be a JSON object.")

    version = payload.get("version")
    if version != REPORT_PROTOCOL_VERSION:
        raise ProtocolError(f"Unsupported report version: {version!r}")

    try:
        return Batch.model_validate(payload)
    except ValidationError as e:
        raise ProtocolError(f"Invalid report: {e}")
