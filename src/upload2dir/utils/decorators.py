"""Decorator utilities for cross-cutting concerns."""
import asyncio
import functools
import logging
import time
from typing import Any, Callable, Optional, TypeVar, cast

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def log_duration(label: Optional[str] = None, level: int = logging.DEBUG) -> Callable[[F], F]:
    """Decorator logging how long a filesystem step took.

    Works for plain and async functions. Failures are logged with their
    duration and re-raised unchanged.

    Args:
        label: Name used in the log line (defaults to the function name)
        level: Log level of the timing line

    Returns:
        Decorator function
    """
    def decorator(func: F) -> F:
        name = label or func.__name__

        def _report(start_time: float, error: Optional[Exception] = None) -> None:
            duration = time.monotonic() - start_time
            if error is None:
                logger.log(level, f"{name} completed in {duration:.3f}s")
            else:
                logger.log(level, f"{name} failed after {duration:.3f}s: {error}")

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _report(start_time, e)
                    raise
                _report(start_time)
                return result
            return cast(F, async_wrapper)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(start_time, e)
                raise
            _report(start_time)
            return result
        return cast(F, wrapper)

    return decorator
