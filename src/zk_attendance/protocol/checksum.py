"""16-bit one's-complement checksum over ZK command packets."""

from __future__ import annotations

from zk_attendance.protocol.constants import USHRT_MAX

__all__ = ["calculate_checksum", "checksum_bytes"]


def calculate_checksum(packet: bytes) -> int:
    """Calculate the checksum the device expects in header bytes 2-3.

    Sums little-endian 16-bit words with end-around carry, adds a trailing odd
    byte unmodified, then returns the one's complement masked to 16 bits.

    Args:
        packet: Full command packet with the checksum slot zeroed

    Returns:
        Checksum value (0x0000-0xFFFF)

    """
    checksum = 0
    even_length = len(packet) - (len(packet) % 2)
    for i in range(0, even_length, 2):
        checksum += packet[i] | (packet[i + 1] << 8)
        if checksum > USHRT_MAX:
            checksum -= USHRT_MAX

    if len(packet) % 2 == 1:
        checksum += packet[-1]

    while checksum > USHRT_MAX:
        checksum -= USHRT_MAX

    return ~checksum & USHRT_MAX


def checksum_bytes(packet: bytes) -> bytes:
    """Return the checksum as 2 little-endian bytes."""
    return calculate_checksum(packet).to_bytes(2, "little")
