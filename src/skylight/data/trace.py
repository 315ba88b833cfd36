from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from skylight.constants import DEFAULT_ENDPOINT
from skylight.data.span import Span


class TraceData(BaseModel):
    """The sealed, serializable form of a committed trace."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    uuid: str
    endpoint: str = DEFAULT_ENDPOINT
    start: float
    spans: List[Span] = []
    metadata: Dict[str, str] = Field(default_factory=dict)

    def without_source_locations(self) -> "TraceData":
        return self.model_copy(
            update={"spans": [span.without_source_location() for span in self.spans]}
        )

    def model_dump(self, **kwargs):
        data = super().model_dump(**kwargs)
        data["spans"] = [span.model_dump() for span in self.spans]
        return data
