"""TCP stream envelope framing.

This module provides EnvelopeFramer for extracting complete envelopes from the
terminal's TCP byte stream, handling partial envelopes and multi-envelope reads.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Final

from zk_attendance.logging_abstraction import get_logger
from zk_attendance.metrics import registry
from zk_attendance.protocol.constants import (
    ENVELOPE_HEADER_LENGTH,
    MACHINE_PREPARE_DATA_1,
    MACHINE_PREPARE_DATA_2,
)

logger = get_logger(__name__)

_ENVELOPE_HEADER: Final = struct.Struct("<HHI")


@dataclass(frozen=True)
class Envelope:
    """One outer transport frame.

    Attributes:
        magic1: First magic word (always MACHINE_PREPARE_DATA_1 once parsed)
        magic2: Second magic word (always MACHINE_PREPARE_DATA_2 once parsed)
        payload_length: Declared payload length from the header
        payload: Inner command packet bytes

    """

    magic1: int
    magic2: int
    payload_length: int
    payload: bytes


class EnvelopeFramer:
    r"""Extract complete envelopes from the TCP byte stream.

    TCP reads may return partial envelopes, multiple envelopes, or exact
    boundaries. EnvelopeFramer buffers incoming bytes and extracts complete
    envelopes based on the header length field.

    Algorithm:

    1. Buffer all incoming bytes
    2. Check if buffer has at least 8 bytes (header)
    3. Verify both magic words; on mismatch clear the whole buffer and stop
    4. If buffer has the full envelope (8 + length), extract it
    5. Repeat until buffer exhausted

    A magic mismatch drops every buffered byte, including any later frame that
    could have been salvaged. The next feed starts from a clean state.

    Example:
        framer = EnvelopeFramer()
        envelopes = framer.feed(b"\x50\x50\x82\x7d\x08\x00")
        assert envelopes == []  # Incomplete header

        envelopes = framer.feed(b"\x00\x00" + packet)
        assert len(envelopes) == 1

    """

    def __init__(self) -> None:
        self.buffer: bytearray = bytearray()

    @staticmethod
    def encode(payload: bytes) -> bytes:
        """Prepend the 8-byte envelope header to a command packet."""
        return _ENVELOPE_HEADER.pack(MACHINE_PREPARE_DATA_1, MACHINE_PREPARE_DATA_2, len(payload)) + payload

    def feed(self, data: bytes) -> list[Envelope]:
        """Add data to buffer and return list of complete envelopes.

        Args:
            data: Incoming bytes from TCP read

        Returns:
            List of complete envelopes (may be empty if none are complete)

        """
        self.buffer.extend(data)
        return self._extract_envelopes()

    def reset(self) -> None:
        """Drop any buffered bytes."""
        self.buffer = bytearray()

    def _extract_envelopes(self) -> list[Envelope]:
        envelopes: list[Envelope] = []

        while len(self.buffer) >= ENVELOPE_HEADER_LENGTH:
            magic1, magic2, payload_length = _ENVELOPE_HEADER.unpack_from(self.buffer, 0)

            if magic1 != MACHINE_PREPARE_DATA_1 or magic2 != MACHINE_PREPARE_DATA_2:
                logger.warning(
                    "Invalid envelope magic 0x%04x/0x%04x, clearing %d buffered bytes",
                    magic1,
                    magic2,
                    len(self.buffer),
                    extra={"buffer_size": len(self.buffer), "magic1": magic1, "magic2": magic2},
                )
                registry.record_framing_reset()
                self.buffer = bytearray()
                break

            total_length = ENVELOPE_HEADER_LENGTH + payload_length
            if len(self.buffer) < total_length:
                # Incomplete envelope, wait for more data
                break

            payload = bytes(self.buffer[ENVELOPE_HEADER_LENGTH:total_length])
            envelopes.append(Envelope(magic1, magic2, payload_length, payload))
            self.buffer = self.buffer[total_length:]

        return envelopes
