"""Chunked retrieval of device-side buffers (user table, attendance log).

Flow:
    1. CMD_DATA_WRRQ names the dataset; a CMD_DATA reply carries it inline
    2. otherwise the reply body holds the total size at bytes 1-5
    3. the buffer is read in MAX_CHUNK slices with CMD_READ_BUFFER_CHUNK
    4. CMD_FREE_DATA releases the device-side buffer

A chunk request is answered in one of three ways: CMD_DATA with the bytes,
CMD_ACK_OK with the bytes, or CMD_PREPARE_DATA followed by a separate
CMD_DATA envelope that arrives through the router's bulk waiter.
"""

from __future__ import annotations

import asyncio
import struct
import time
from typing import TYPE_CHECKING, Final

from zk_attendance.logging_abstraction import get_logger
from zk_attendance.metrics import registry
from zk_attendance.protocol.constants import (
    CMD_ACK_OK,
    CMD_DATA,
    CMD_DATA_WRRQ,
    CMD_FREE_DATA,
    CMD_PREPARE_DATA,
    CMD_READ_BUFFER_CHUNK,
    MAX_CHUNK,
    command_name,
)
from zk_attendance.protocol.exceptions import ProtocolResponseError, ZKError
from zk_attendance.protocol.zk_protocol import parse_header, response_body
from zk_attendance.transport.exceptions import CommandTimeoutError

if TYPE_CHECKING:
    from zk_attendance.transport.session import Session

logger = get_logger(__name__)

_READ_REQUEST: Final = struct.Struct("<BHii")
_CHUNK_REQUEST: Final = struct.Struct("<ii")
_SIZE_FIELD: Final = struct.Struct("<I")

CHUNK_PATH_DIRECT: Final = "direct"
CHUNK_PATH_PREPARE: Final = "prepare"
CHUNK_PATH_ACK: Final = "ack_ok"


def plan_chunks(size: int, max_chunk: int = MAX_CHUNK) -> list[int]:
    """Return the chunk lengths for a buffer of `size` bytes."""
    full, remain = divmod(size, max_chunk)
    chunks = [max_chunk] * full
    if remain:
        chunks.append(remain)
    return chunks


async def free_data(session: Session) -> None:
    """Release the device-side read buffer.

    Raises:
        ProtocolResponseError: Device did not acknowledge the release

    """
    response = await session.send_command(CMD_FREE_DATA)
    response_code = parse_header(response).command
    if response_code != CMD_ACK_OK:
        msg = "free data failed"
        raise ProtocolResponseError(msg, response_code)


async def read_chunk(session: Session, start: int, size: int) -> bytes:
    """Read `size` bytes at `start` from the prepared device buffer.

    Raises:
        ProtocolResponseError: Unexpected reply code for the chunk
        CommandTimeoutError: DATA envelope did not follow PREPARE_DATA in time

    """
    bulk_future = session.router.arm_bulk()
    try:
        response = await session.send_command(CMD_READ_BUFFER_CHUNK, _CHUNK_REQUEST.pack(start, size))
        response_code = parse_header(response).command

        if response_code == CMD_DATA:
            registry.record_bulk_chunk(CHUNK_PATH_DIRECT)
            return response_body(response)

        if response_code == CMD_PREPARE_DATA:
            timeout = session.timeouts.data_timeout_seconds
            try:
                data_packet = await asyncio.wait_for(bulk_future, timeout=timeout)
            except TimeoutError as e:
                registry.record_command_timeout(command_name(CMD_DATA))
                raise CommandTimeoutError(CMD_DATA, timeout) from e
            data_code = parse_header(data_packet).command
            if data_code != CMD_DATA:
                msg = "expected data packet after prepare data"
                raise ProtocolResponseError(msg, data_code)
            registry.record_bulk_chunk(CHUNK_PATH_PREPARE)
            return response_body(data_packet)

        if response_code == CMD_ACK_OK:
            registry.record_bulk_chunk(CHUNK_PATH_ACK)
            return response_body(response)

        msg = f"unexpected response to chunk read at offset {start}"
        raise ProtocolResponseError(msg, response_code)
    finally:
        session.router.disarm_bulk()
        if not bulk_future.done():
            _ = bulk_future.cancel()
        elif not bulk_future.cancelled():
            _ = bulk_future.exception()


async def read_with_buffer(session: Session, command: int, fct: int = 0, ext: int = 0) -> bytes:
    """Fetch a complete dataset from the device.

    Only one transfer runs per session at a time. A failed chunk aborts the
    whole transfer; the device buffer is still released before the error
    propagates.

    Args:
        session: Connected session
        command: Dataset command (CMD_USERTEMP_RRQ, CMD_ATTLOG_RRQ, ...)
        fct: Function code for the dataset
        ext: Extra parameter

    Returns:
        The raw dataset (starts with the 4-byte total size header)

    Raises:
        ProtocolResponseError: Size reply too short, bad chunk reply, or free data failed

    """
    name = command_name(command)
    async with session.bulk_lock:
        start_time = time.perf_counter()
        try:
            data = await _read_with_buffer(session, command, fct, ext)
        except ZKError:
            registry.record_bulk_duration(name, "error", time.perf_counter() - start_time)
            raise
        registry.record_bulk_duration(name, "ok", time.perf_counter() - start_time)
        registry.record_bulk_bytes(name, len(data))
        return data


async def _read_with_buffer(session: Session, command: int, fct: int, ext: int) -> bytes:
    name = command_name(command)
    response = await session.send_command(CMD_DATA_WRRQ, _READ_REQUEST.pack(1, command, fct, ext))
    response_code = parse_header(response).command
    body = response_body(response)

    if response_code == CMD_DATA:
        logger.debug("%s returned %d bytes inline", name, len(body), extra={"command": command})
        return body

    if len(body) < 5:
        msg = f"buffer size reply too short ({len(body)} bytes)"
        raise ProtocolResponseError(msg, response_code)

    (size,) = _SIZE_FIELD.unpack_from(body, 1)
    if size == 0:
        return b""

    chunks = plan_chunks(size)
    logger.debug(
        "%s: reading %d bytes in %d chunk(s)",
        name,
        size,
        len(chunks),
        extra={"command": command, "size": size, "chunks": len(chunks)},
    )

    parts: list[bytes] = []
    offset = 0
    try:
        for length in chunks:
            chunk = await read_chunk(session, offset, length)
            parts.append(chunk)
            # Advance by what arrived, not what was requested
            offset += len(chunk)
            if length == MAX_CHUNK:
                await asyncio.sleep(session.timeouts.chunk_delay_seconds)
    except ZKError as e:
        logger.warning(
            "%s aborted at offset %d: %s",
            name,
            offset,
            e,
            extra={"command": command, "offset": offset, "size": size, "error_type": type(e).__name__},
        )
        try:
            await free_data(session)
        except ZKError as free_error:
            logger.debug("Free data after failed transfer also failed: %s", free_error)
        raise

    await free_data(session)
    data = b"".join(parts)
    logger.debug("%s complete (%d/%d bytes)", name, len(data), size, extra={"command": command})
    return data
