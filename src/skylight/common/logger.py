import contextvars
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from contextlib import contextmanager

# Global variables
logger = None


class LoggingState:
    enabled: bool = False
    path: str | None = None


LOGGING_STATE = LoggingState()

# Trace (or bare endpoint name) being built in the current execution context
current_log_trace = contextvars.ContextVar("skylight_log_trace", default=None)

STDOUT_PATH = "-"


@contextmanager
def enable_logging(
    name: str = "skylight",
    path: str = "./logs",
    level: str = "info",
    max_bytes: int = 1024 * 1024,
    backup_count: int = 5,
):
    """
    Context manager to temporarily enable logging for a specific block of code.

    Passing ``path="-"`` logs to stdout only.
    """
    global logger
    LOGGING_STATE.enabled = True
    LOGGING_STATE.path = path
    # Initialize logger if not already initialized
    if logger is None:
        logger = _initialize_logger(
            name=name,
            path=path,
            level=level,
            max_bytes=max_bytes,
            backup_count=backup_count,
        )
    try:
        logger.info("Logging enabled")
        yield
    finally:
        logger.info("Logging disabled")
        LOGGING_STATE.enabled = False
        LOGGING_STATE.path = None


def start_logging(name: str = "skylight", path: str = "./logs", level: str = "info"):
    """
    Enable logging for the lifetime of the agent. Used by the instrumenter and
    the standalone worker process, which have no natural ``with`` block.
    """
    global logger
    if logger is None:
        logger = _initialize_logger(name=name, path=path, level=level)
    LOGGING_STATE.enabled = True
    LOGGING_STATE.path = path


def stop_logging():
    LOGGING_STATE.enabled = False
    LOGGING_STATE.path = None


def _initialize_logger(
    name: str = "skylight",
    max_bytes: int = 1024 * 1024,  # 1MB
    backup_count: int = 5,
    path: str = "./logs",
    level: str = "info",
) -> logging.Logger:
    """
    Initialize the global logger instance if it doesn't exist.
    Returns the global logger instance.
    """
    global logger

    if logger is not None:
        return logger

    # Create a custom formatter that includes the traced endpoint when available
    class TraceFormatter(logging.Formatter):
        def format(self, record):
            endpoint = get_current_endpoint()
            if endpoint is not None:
                record.endpoint = endpoint
                return logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - [%(endpoint)s] %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                ).format(record)
            return logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            ).format(record)

    log_level = getattr(logging, str(level).upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(TraceFormatter())
    console_handler.setLevel(log_level)

    handlers = [console_handler]

    if path != STDOUT_PATH:
        log_dir = Path(path)
        log_dir.mkdir(exist_ok=True, parents=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=max_bytes,
            backupCount=backup_count,
            mode="a",
        )
        file_handler.setFormatter(TraceFormatter())
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    # Get logger
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # Prevent adding handlers multiple times
    if not logger.handlers:
        for handler in handlers:
            logger.addHandler(handler)

    return logger


def log_if_enabled(func):
    """Decorator to check if logging is enabled before executing logging statements"""

    def wrapper(*args, **kwargs):
        if LOGGING_STATE.enabled:
            return func(*args, **kwargs)

    return wrapper


@log_if_enabled
def debug(msg: str):
    """Log debug message if logging is enabled"""
    if logger:
        logger.debug(msg)


@log_if_enabled
def info(msg: str):
    """Log info message if logging is enabled"""
    if logger:
        logger.info(msg)


@log_if_enabled
def warning(msg: str):
    """Log warning message if logging is enabled"""
    if logger:
        logger.warning(msg)


@log_if_enabled
def error(msg: str):
    """Log error message if logging is enabled"""
    if logger:
        logger.error(msg)


def get_current_endpoint() -> str | None:
    """Endpoint of the trace active in this context, read at call time"""
    source = current_log_trace.get()
    if source is None:
        return None
    return getattr(source, "endpoint", source)


@contextmanager
def trace_logging_context(trace):
    """
    Context manager that tags log records with the endpoint being traced.
    ``trace`` is an endpoint name or any object with an ``endpoint``
    attribute; the attribute is re-read for every record, so renaming the
    endpoint mid-trace shows up in later log lines.
    """
    token = current_log_trace.set(trace)
    try:
        yield
    finally:
        current_log_trace.reset(token)
