"""
Decorators that wrap a function or method in a span.

    class MyClass:
        @instrument_method
        def my_method(self):
            do_expensive_stuff()

        @instrument_method(title="Expensive work", category="app.work")
        def other_method(self):
            ...

        @classmethod
        @instrument_class_method
        def build(cls):
            ...

By default a method span is titled ``MyClass#my_method`` and a class method
span ``MyClass.build``. The source file and line are captured once, when the
decorator is applied.
"""

import functools
import inspect
from typing import Callable, Optional

from skylight.constants import DEFAULT_METHOD_CATEGORY
from skylight.instrumenter import Instrumenter, get_default_instrumenter


def _source_location(func):
    try:
        source_file = inspect.getsourcefile(func)
    except TypeError:
        source_file = None
    code = getattr(func, "__code__", None)
    source_line = code.co_firstlineno if code is not None else None
    return source_file, source_line


def _owner_and_name(func):
    """Split ``Outer.method`` into (``Outer``, ``method``); owner is None for plain functions."""
    parts = getattr(func, "__qualname__", func.__name__).split(".")
    if len(parts) > 1 and parts[-2] != "<locals>":
        return parts[-2], parts[-1]
    return None, parts[-1]


def default_method_title(func) -> str:
    owner, name = _owner_and_name(func)
    if owner is None:
        return f"{func.__module__}.{name}"
    return f"{owner}#{name}"


def default_class_method_title(func) -> str:
    owner, name = _owner_and_name(func)
    if owner is None:
        return f"{func.__module__}.{name}"
    return f"{owner}.{name}"


def _wrap(
    func: Callable,
    category: str,
    title: str,
    description: Optional[str],
    instrumenter: Optional[Instrumenter],
):
    source_file, source_line = _source_location(func)

    def current():
        return instrumenter or get_default_instrumenter()

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            active = current()
            if active is None:
                return await func(*args, **kwargs)
            with active.instrument(
                category,
                title,
                description,
                source_file=source_file,
                source_line=source_line,
            ):
                return await func(*args, **kwargs)

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        active = current()
        if active is None:
            return func(*args, **kwargs)
        with active.instrument(
            category,
            title,
            description,
            source_file=source_file,
            source_line=source_line,
        ):
            return func(*args, **kwargs)

    return wrapper


def instrument_method(
    func=None,
    *,
    category: str = DEFAULT_METHOD_CATEGORY,
    title: Optional[str] = None,
    description: Optional[str] = None,
    instrumenter: Optional[Instrumenter] = None,
):
    """
    Decorator that records a span around every call of the decorated function.

    Args:
        func: The function to decorate
        category: Span category (default ``app.method``)
        title: Span title (defaults to ``ClassName#method_name``)
        description: Optional span description
        instrumenter: Instrumenter to report to; defaults to the one started
                      with ``skylight.start`` at call time
    """
    if func is None:
        return lambda f: instrument_method(
            f,
            category=category,
            title=title,
            description=description,
            instrumenter=instrumenter,
        )

    if isinstance(func, (classmethod, staticmethod)):
        inner = func.__func__
        return type(func)(
            instrument_class_method(
                inner,
                category=category,
                title=title,
                description=description,
                instrumenter=instrumenter,
            )
        )

    return _wrap(
        func,
        str(category),
        str(title or default_method_title(func)),
        description,
        instrumenter,
    )


def instrument_class_method(
    func=None,
    *,
    category: str = DEFAULT_METHOD_CATEGORY,
    title: Optional[str] = None,
    description: Optional[str] = None,
    instrumenter: Optional[Instrumenter] = None,
):
    """Like ``instrument_method`` but titles the span ``ClassName.method_name``."""
    if func is None:
        return lambda f: instrument_class_method(
            f,
            category=category,
            title=title,
            description=description,
            instrumenter=instrumenter,
        )

    if isinstance(func, (classmethod, staticmethod)):
        return type(func)(
            instrument_class_method(
                func.__func__,
                category=category,
                title=title,
                description=description,
                instrumenter=instrumenter,
            )
        )

    return _wrap(
        func,
        str(category),
        str(title or default_class_method_title(func)),
        description,
        instrumenter,
    )
