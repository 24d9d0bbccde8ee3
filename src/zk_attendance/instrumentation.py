"""
Performance instrumentation for device operations.

Provides a decorator for timing async operations with a configurable slow
threshold and an on/off toggle.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from zk_attendance import const
from zk_attendance.logging_abstraction import ZKLogger, get_logger

__all__ = [
    "measure_time",
    "timed_async",
]

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


def measure_time(start_time: float) -> float:
    """Return milliseconds elapsed since a time.perf_counter() reading."""
    return (time.perf_counter() - start_time) * 1000


def timed_async(
    operation_name: str | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator for timing async functions with configurable threshold warnings.

    Logs execution time and warns if operation exceeds ZK_PERF_THRESHOLD_MS.
    Disabled when ZK_PERF_TRACKING is off.

    Args:
        operation_name: Name for the operation (defaults to function name)

    Example:
        @timed_async("get_users")
        async def get_users(self):
            ...
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if not const.ZK_PERF_TRACKING:
                return await func(*args, **kwargs)

            op_name = operation_name or func.__name__
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                _log_timing(logger, op_name, measure_time(start_time), const.ZK_PERF_THRESHOLD_MS)

        return wrapper

    return decorator


def _log_timing(log: ZKLogger, operation_name: str, elapsed_ms: float, threshold_ms: int) -> None:
    context = {
        "operation": operation_name,
        "duration_ms": round(elapsed_ms, 2),
        "threshold_ms": threshold_ms,
        "exceeded_threshold": elapsed_ms > threshold_ms,
    }
    if elapsed_ms > threshold_ms:
        log.warning(
            "[%s] completed in %.1fms (threshold: %dms)",
            operation_name,
            elapsed_ms,
            threshold_ms,
            extra=context,
        )
    else:
        log.debug("[%s] completed in %.1fms", operation_name, elapsed_ms, extra=context)
