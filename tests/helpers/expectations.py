"""Exception assertions shared by the test suites."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from zk_attendance.protocol.exceptions import ProtocolResponseError

P = ParamSpec("P")
TException = TypeVar("TException", bound=BaseException)


async def expect_async_exception(
    func: Callable[P, Awaitable[object]],
    exception_type: type[TException],
    *args: P.args,
    **kwargs: P.kwargs,
) -> TException:
    """Await func and return the exception it raised."""
    try:
        _ = await func(*args, **kwargs)
    except exception_type as err:
        return err
    message = f"Expected {exception_type.__name__} to be raised"
    raise AssertionError(message)  # pragma: no cover


def expect_exception(
    func: Callable[P, object],
    exception_type: type[TException],
    *args: P.args,
    **kwargs: P.kwargs,
) -> TException:
    """Call func and return the exception it raised."""
    try:
        _ = func(*args, **kwargs)
    except exception_type as err:
        return err
    message = f"Expected {exception_type.__name__} to be raised"
    raise AssertionError(message)  # pragma: no cover


async def expect_rejection(
    func: Callable[P, Awaitable[object]],
    response_code: int,
    *args: P.args,
    **kwargs: P.kwargs,
) -> ProtocolResponseError:
    """Await func and check the device refused it with response_code."""
    err = await expect_async_exception(func, ProtocolResponseError, *args, **kwargs)
    assert err.response_code == response_code, (
        f"expected response code {response_code}, got {err.response_code} ({err.reason})"
    )
    return err
