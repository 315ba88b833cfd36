"""Worker ABC shared by the embedded and standalone strategies."""

from abc import ABC, abstractmethod
from typing import Union

from skylight.data.trace import TraceData
from skylight.trace import Trace


class Worker(ABC):
    """Accepts committed traces and ships them to the remote collector."""

    @abstractmethod
    def spawn(self) -> None: ...

    @abstractmethod
    def submit(self, trace: Union[Trace, TraceData]) -> bool: ...

    @abstractmethod
    def flush(self) -> None: ...

    @abstractmethod
    def stop(self) -> None: ...

    @property
    @abstractmethod
    def running(self) -> bool: ...
