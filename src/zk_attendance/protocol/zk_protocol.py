"""ZK command packet encoder/decoder.

This module implements the inner 8-byte command header (command code,
checksum, session id, reply id), checksum verification and the
challenge key sent with CMD_AUTH.
"""

from __future__ import annotations

import struct
from typing import Final, NamedTuple

from zk_attendance.protocol.checksum import calculate_checksum
from zk_attendance.protocol.constants import AUTH_TICKS, COMMAND_HEADER_LENGTH
from zk_attendance.protocol.exceptions import PacketDecodeError

__all__ = [
    "CommandHeader",
    "build_command_packet",
    "make_command_key",
    "parse_header",
    "response_body",
    "verify_checksum",
]

_COMMAND_HEADER: Final = struct.Struct("<HHHH")
_KEY_SALT: Final = b"ZKSO"


class CommandHeader(NamedTuple):
    """Parsed inner command header."""

    command: int
    checksum: int
    session_id: int
    reply_id: int


def build_command_packet(command: int, session_id: int, reply_id: int, body: bytes = b"") -> bytes:
    """Build a command packet with its checksum filled in.

    The header is laid out with a zero checksum placeholder, the body is
    appended, and the checksum over the whole buffer is written back into
    bytes 2-3.

    Args:
        command: Command code
        session_id: Session id assigned by the device on CMD_CONNECT
        reply_id: Reply id used to correlate the response
        body: Command payload

    Returns:
        Complete inner packet bytes (without the outer envelope)

    """
    packet = bytearray(_COMMAND_HEADER.pack(command, 0, session_id, reply_id))
    packet.extend(body)
    struct.pack_into("<H", packet, 2, calculate_checksum(packet))
    return bytes(packet)


def parse_header(data: bytes) -> CommandHeader:
    """Parse the 8-byte command header.

    Raises:
        PacketDecodeError: If fewer than 8 bytes are supplied

    """
    if len(data) < COMMAND_HEADER_LENGTH:
        msg = f"malformed header: {len(data)} bytes (need {COMMAND_HEADER_LENGTH})"
        raise PacketDecodeError(msg, data)
    return CommandHeader(*_COMMAND_HEADER.unpack_from(data, 0))


def response_body(packet: bytes) -> bytes:
    """Return the payload that follows the command header."""
    return packet[COMMAND_HEADER_LENGTH:]


def verify_checksum(packet: bytes) -> bool:
    """Check that the checksum stored in a packet matches its contents."""
    header = parse_header(packet)
    zeroed = bytearray(packet)
    zeroed[2:4] = b"\x00\x00"
    return calculate_checksum(zeroed) == header.checksum


def make_command_key(key: int, session_id: int, ticks: int = AUTH_TICKS) -> bytes:
    """Derive the 4-byte AUTH payload from the comm password and session id.

    Args:
        key: Numeric comm password configured on the terminal
        session_id: Session id from the CMD_CONNECT reply
        ticks: Salt byte source (only the low 8 bits are used)

    Returns:
        4 bytes to send as the CMD_AUTH body

    """
    key &= 0xFFFFFFFF
    session_id &= 0xFFFFFFFF

    # Rebuild the key by scanning bits from least to most significant
    k = 0
    for i in range(32):
        k = (k << 1) | 1 if key & (1 << i) else k << 1
    k = (k + session_id) & 0xFFFFFFFF

    packed = bytearray(struct.pack("<I", k))
    for i, salt in enumerate(_KEY_SALT):
        packed[i] ^= salt

    low, high = struct.unpack("<HH", packed)
    swapped = bytearray(struct.pack("<HH", high, low))

    b = ticks & 0xFF
    swapped[0] ^= b
    swapped[1] ^= b
    swapped[2] = b
    swapped[3] ^= b
    return bytes(swapped)
