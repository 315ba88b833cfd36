"""
Common Exceptions in Skylight
"""


class SkylightError(Exception):
    """
    Base class for errors raised by the agent
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TraceError(SkylightError):
    """
    Exception raised when a trace is structurally unbalanced, e.g. a stop
    without a matching start or a commit while spans are still open.
    The trace that raised it must be discarded.
    """


class DeliveryFailure(SkylightError):
    """
    Exception raised when a batch could not be delivered to the collector
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ChannelFailure(SkylightError):
    """
    Exception raised when the standalone worker cannot be reached
    """


class ConfigError(SkylightError):
    """
    Exception raised when the agent configuration is invalid
    """


class ProtocolError(SkylightError):
    """
    Exception raised when a report body or IPC frame cannot be decoded
    """
