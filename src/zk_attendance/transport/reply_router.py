"""Command/reply correlation for one session.

ReplyRouter owns the map of in-flight reply ids and the optional bulk data
waiter. The session read loop hands every inbound packet to dispatch().

Dispatch policy (first match wins):

1. **bulk**: a bulk data waiter is armed, the packet is CMD_DATA, and no
   command waiter is registered under its reply id
2. **matched**: a command waiter is registered under the packet's reply id
3. **fallback**: live waiters exist but none matches; the oldest one receives the
   packet (some firmware does not echo reply ids reliably)
4. **dropped**: nothing is waiting

Rule 3 can misattribute a reply when several commands are in flight, so the
session allows only one outstanding command at a time.
"""

from __future__ import annotations

import asyncio
import time

from zk_attendance.logging_abstraction import get_logger
from zk_attendance.metrics import registry
from zk_attendance.protocol.constants import CMD_DATA, command_name
from zk_attendance.protocol.zk_protocol import parse_header
from zk_attendance.transport.types import PendingReply

logger = get_logger(__name__)

DISPATCH_BULK = "bulk"
DISPATCH_MATCHED = "matched"
DISPATCH_FALLBACK = "fallback"
DISPATCH_DROPPED = "dropped"


class ReplyRouter:
    """Match inbound packets to the callers waiting for them."""

    def __init__(self) -> None:
        # dict preserves insertion order, so the first entry is the oldest waiter
        self._pending: dict[int, PendingReply] = {}
        self._bulk_waiter: asyncio.Future[bytes] | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def bulk_armed(self) -> bool:
        return self._bulk_waiter is not None and not self._bulk_waiter.done()

    def register(self, reply_id: int, command: int, correlation_id: str | None = None) -> PendingReply:
        """Register a waiter under reply_id (call before writing the command)."""
        future: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()
        pending = PendingReply(
            reply_id=reply_id,
            command=command,
            correlation_id=correlation_id,
            sent_at=time.perf_counter(),
            future=future,
        )
        stale = self._pending.pop(reply_id, None)
        if stale is not None and not stale.future.done():
            logger.warning(
                "Reply id %d reused while still pending, replacing waiter",
                reply_id,
                extra={"reply_id": reply_id, "stale_command": stale.command},
            )
            stale.future.cancel()
        self._pending[reply_id] = pending
        return pending

    def discard(self, reply_id: int) -> None:
        """Remove a waiter (timeout or failed write)."""
        self._pending.pop(reply_id, None)

    def arm_bulk(self) -> asyncio.Future[bytes]:
        """Arm the out-of-band waiter for the DATA envelope of a chunk read."""
        self._bulk_waiter = asyncio.get_running_loop().create_future()
        return self._bulk_waiter

    def disarm_bulk(self) -> None:
        self._bulk_waiter = None

    def dispatch(self, packet: bytes) -> str:
        """Route one inbound packet and return the dispatch outcome.

        Raises:
            PacketDecodeError: Packet is shorter than a command header

        """
        header = parse_header(packet)
        outcome = self._route(header.command, header.reply_id, packet)
        registry.record_reply_dispatch(outcome)
        return outcome

    def _route(self, response_code: int, reply_id: int, packet: bytes) -> str:
        if response_code == CMD_DATA and reply_id not in self._pending and self.bulk_armed:
            assert self._bulk_waiter is not None
            self._bulk_waiter.set_result(packet)
            logger.debug(
                "Bulk DATA packet delivered (%d bytes)",
                len(packet),
                extra={"reply_id": reply_id, "bytes": len(packet)},
            )
            return DISPATCH_BULK

        pending = self._pending.pop(reply_id, None)
        if pending is not None:
            self._resolve(pending, packet)
            return DISPATCH_MATCHED

        for stale_id in [rid for rid, waiter in self._pending.items() if waiter.future.done()]:
            del self._pending[stale_id]

        if self._pending:
            oldest_id = next(iter(self._pending))
            oldest = self._pending.pop(oldest_id)
            logger.warning(
                "Reply id mismatch: got %d, delivering to oldest waiter %d",
                reply_id,
                oldest_id,
                extra={
                    "reply_id": reply_id,
                    "waiting": [oldest_id, *self._pending],
                    "response_code": response_code,
                    "command": command_name(oldest.command),
                },
            )
            self._resolve(oldest, packet)
            return DISPATCH_FALLBACK

        logger.warning(
            "Dropping packet with no waiter (code %d, reply id %d)",
            response_code,
            reply_id,
            extra={"response_code": response_code, "reply_id": reply_id},
        )
        return DISPATCH_DROPPED

    @staticmethod
    def _resolve(pending: PendingReply, packet: bytes) -> None:
        if pending.future.done():
            return
        pending.future.set_result(packet)
        registry.record_command_latency(command_name(pending.command), time.perf_counter() - pending.sent_at)

    def fail_all(self, exc: BaseException) -> None:
        """Fail every waiter (command and bulk) and clear the registrations."""
        for pending in self._pending.values():
            if not pending.future.done():
                pending.future.set_exception(exc)
        self._pending.clear()
        if self._bulk_waiter is not None and not self._bulk_waiter.done():
            self._bulk_waiter.set_exception(exc)
        self._bulk_waiter = None
