"""Core types for the session transport layer.

This module defines timeout configuration and the bookkeeping record kept
for every command awaiting its reply.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field


class TimeoutConfig:
    """Timeout configuration derived from one base timeout.

    Connect, per-command and write deadlines all use the base timeout. The
    second envelope of a PREPARE_DATA chunk reply gets five extra seconds
    because the device assembles the chunk before sending it.
    """

    def __init__(self, timeout_seconds: float = 10.0, chunk_delay_ms: int = 10) -> None:
        """Initialize timeout configuration.

        Args:
            timeout_seconds: Base timeout for connect and command replies
            chunk_delay_ms: Pause between full-size chunk reads (milliseconds)
        """
        self.timeout_seconds: float = timeout_seconds
        self.connect_timeout_seconds: float = timeout_seconds
        self.command_timeout_seconds: float = timeout_seconds
        self.write_timeout_seconds: float = timeout_seconds
        self.data_timeout_seconds: float = timeout_seconds + 5.0
        self.chunk_delay_seconds: float = chunk_delay_ms / 1000.0

    def __repr__(self) -> str:
        return (
            f"TimeoutConfig(command={self.command_timeout_seconds:.1f}s, "
            f"data={self.data_timeout_seconds:.1f}s, "
            f"chunk_delay={self.chunk_delay_seconds * 1000:.0f}ms)"
        )


@dataclass
class PendingReply:
    """Tracks a command awaiting its reply.

    Attributes:
        reply_id: 16-bit reply id carried in the command header
        command: Command code (for logs and metrics)
        correlation_id: Correlation id active when the command was sent
        sent_at: time.perf_counter() reading taken at registration
        future: Resolved with the raw reply packet (header + body)
    """

    reply_id: int
    command: int
    correlation_id: str | None
    sent_at: float
    future: asyncio.Future[bytes] = field(repr=False)
