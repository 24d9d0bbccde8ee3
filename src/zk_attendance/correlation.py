"""
Correlation ids for terminal exchanges.

A correlation id lives in a contextvar, so every log line emitted while a
command is in flight (the send, the routed reply, a timeout, the chunk reads
of a bulk transfer) carries the same id. Ids are UUIDv7 and sort by creation.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from typing import cast

from uuid_extensions import uuid7

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
]

_current: contextvars.ContextVar[str | None] = contextvars.ContextVar("zk_correlation_id", default=None)


def generate_correlation_id() -> str:
    return str(cast(uuid.UUID, uuid7()))


def get_correlation_id() -> str | None:
    return _current.get()


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
    auto_generate: bool = True,
) -> Generator[str | None]:
    """
    Scope a correlation id to a block.

    Passing the caller's current id keeps an outer scope's id (the CLI run)
    on nested exchanges; passing None starts a fresh one unless
    auto_generate is False. The outer value is restored on exit, including
    when the block raises.

    Yields:
        The id in effect inside the block
    """
    if correlation_id is None and auto_generate:
        correlation_id = generate_correlation_id()

    token = _current.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _current.reset(token)


def ensure_correlation_id() -> str:
    """Return the current id, creating one for this context when missing."""
    correlation_id = _current.get()
    if correlation_id is None:
        correlation_id = generate_correlation_id()
        _current.set(correlation_id)
    return correlation_id
