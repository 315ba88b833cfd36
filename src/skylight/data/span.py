from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Span(BaseModel):
    """
    A finalized span. Times are integer microseconds relative to the start of
    the owning trace; ``ended_at`` is absent for instantaneous spans and
    ``children`` is absent when the span has no visible descendants.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    category: str
    title: Optional[str] = None
    description: Optional[str] = None
    started_at: int
    ended_at: Optional[int] = None
    children: Optional[int] = None
    source_file: Optional[str] = None
    source_line: Optional[int] = None

    @model_validator(mode="after")
    def validate_times(self):
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError(
                f"Span {self.category!r} ends before it starts: "
                f"{self.ended_at} < {self.started_at}"
            )
        if self.children is not None and self.children < 1:
            raise ValueError("Span children must be absent or positive.")
        return self

    @property
    def duration(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at

    def without_source_location(self) -> "Span":
        if self.source_file is None and self.source_line is None:
            return self
        return self.model_copy(update={"source_file": None, "source_line": None})

    def model_dump(self, **kwargs):
        # Optional fields are omitted rather than sent as null
        kwargs.setdefault("exclude_none", True)
        return super().model_dump(**kwargs)
