"""
Trace engine.

A Trace turns a flat sequence of ``start`` / ``stop`` / ``record`` calls into
a list of finalized spans with parent/child counts. Spans are appended in the
order they are finalized, so an instantaneous ``record`` inside an open span
appears before that span.
"""

import uuid as uuid_lib
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from skylight.common.clock import Clock
from skylight.constants import DEFAULT_ENDPOINT, TICKS_PER_SECOND
from skylight.data.span import Span
from skylight.data.trace import TraceData
from skylight.exceptions import TraceError

HiddenPredicate = Callable[[str, Optional[str], Optional[str]], bool]


def to_ticks(t: float, start: float) -> int:
    """Convert a clock reading to integer microseconds since ``start``."""
    return round((t - start) * TICKS_PER_SECOND)


def hidden_categories(*categories: str) -> HiddenPredicate:
    """Build a predicate hiding spans whose category is in ``categories``."""
    hidden = frozenset(categories)

    def is_hidden(category, title=None, description=None) -> bool:
        return category in hidden

    return is_hidden


def never_hidden(category, title=None, description=None) -> bool:
    return False


@dataclass
class _OpenSpan:
    category: str
    title: Optional[str]
    description: Optional[str]
    started_at: int
    hidden: bool
    source_file: Optional[str] = None
    source_line: Optional[int] = None
    children: int = 0

    def finalize(self, ended_at: Optional[int]) -> Span:
        return Span(
            category=self.category,
            title=self.title,
            description=self.description,
            started_at=self.started_at,
            ended_at=ended_at,
            children=self.children or None,
            source_file=self.source_file,
            source_line=self.source_line,
        )


class Trace:
    """
    A per-request trace. Owned by a single execution context until
    ``commit``; not safe for concurrent mutation.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        start: Optional[float] = None,
        clock: Optional[Clock] = None,
        is_hidden: Optional[HiddenPredicate] = None,
        uuid: Optional[str] = None,
    ):
        self.clock = clock or Clock()
        self.endpoint = endpoint
        self.start_time: float = self.clock.now() if start is None else start
        self.uuid = uuid or str(uuid_lib.uuid4())
        self.metadata: Dict[str, str] = {}
        self.is_hidden = is_hidden or never_hidden
        self._stack: List[_OpenSpan] = []
        self._spans: List[Span] = []
        self._committed = False

    @property
    def endpoint(self) -> str:
        return self._endpoint or DEFAULT_ENDPOINT

    @endpoint.setter
    def endpoint(self, value: Optional[str]):
        self._endpoint = value

    @property
    def spans(self) -> Sequence[Span]:
        return tuple(self._spans)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def committed(self) -> bool:
        return self._committed

    def start(
        self,
        t: float,
        category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        source_file: Optional[str] = None,
        source_line: Optional[int] = None,
    ) -> None:
        self._check_open()
        self._stack.append(
            _OpenSpan(
                category=str(category),
                title=title,
                description=description,
                started_at=to_ticks(t, self.start_time),
                hidden=bool(self.is_hidden(str(category), title, description)),
                source_file=source_file,
                source_line=source_line,
            )
        )

    def record(
        self,
        t: float,
        category: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        source_file: Optional[str] = None,
        source_line: Optional[int] = None,
    ) -> None:
        self._check_open()
        span = _OpenSpan(
            category=str(category),
            title=title,
            description=description,
            started_at=to_ticks(t, self.start_time),
            hidden=False,
            source_file=source_file,
            source_line=source_line,
        )
        self._attribute_to_parent()
        self._spans.append(span.finalize(None))

    def stop(self, t: float) -> None:
        self._check_open()
        if not self._stack:
            raise TraceError(f"Trace unbalanced: stop({t}) with no open span")

        span = self._stack.pop()

        if span.hidden:
            # Hidden spans hand their children to the next visible ancestor
            parent = self._visible_parent()
            if parent is not None:
                parent.children += span.children
            return

        ended_at = max(to_ticks(t, self.start_time), span.started_at)
        self._attribute_to_parent()
        self._spans.append(span.finalize(ended_at))

    def commit(self) -> None:
        if self._stack:
            raise TraceError(
                f"Trace unbalanced: commit with {len(self._stack)} open span(s)"
            )
        self._committed = True

    def to_data(self) -> TraceData:
        """Return the sealed form of this trace for submission."""
        if not self._committed:
            raise TraceError("Trace must be committed before it is submitted")
        return TraceData(
            uuid=self.uuid,
            endpoint=self.endpoint,
            start=self.start_time,
            spans=list(self._spans),
            metadata=dict(self.metadata),
        )

    def _check_open(self):
        if self._committed:
            raise TraceError("Trace already committed")

    def _visible_parent(self) -> Optional[_OpenSpan]:
        for span in reversed(self._stack):
            if not span.hidden:
                return span
        return None

    def _attribute_to_parent(self):
        parent = self._visible_parent()
        if parent is not None:
            parent.children += 1

    def __repr__(self):
        return (
            f"Trace(endpoint={self.endpoint!r}, uuid={self.uuid!r}, "
            f"spans={len(self._spans)}, open={len(self._stack)})"
        )
