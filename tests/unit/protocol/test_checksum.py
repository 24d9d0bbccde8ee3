"""Unit tests for the command packet checksum."""

from __future__ import annotations

import pytest

from zk_attendance.protocol.checksum import calculate_checksum, checksum_bytes

pytestmark = pytest.mark.unit


class TestCalculateChecksum:
    def test_connect_packet(self) -> None:
        packet = bytes.fromhex("e803000000000000")

        assert calculate_checksum(packet) == 0xFC17
        assert checksum_bytes(packet) == b"\x17\xfc"

    def test_empty_packet(self) -> None:
        assert calculate_checksum(b"") == 0xFFFF

    def test_single_word(self) -> None:
        assert calculate_checksum(b"\x01\x00\x00\x00") == 0xFFFE

    def test_end_around_carry_folds_to_zero(self) -> None:
        assert calculate_checksum(b"\xff\xff\xff\xff") == 0

    def test_odd_trailing_byte_is_added(self) -> None:
        assert calculate_checksum(b"\x01\x00\x05") == 0xFFF9

    def test_connect_with_max_reply_id(self) -> None:
        # 0x03e8 + 0xffff wraps back to 0x03e8
        assert calculate_checksum(bytes.fromhex("e80300000000ffff")) == 0xFC17

    def test_result_fits_sixteen_bits(self) -> None:
        assert 0 <= calculate_checksum(bytes(range(256)) * 4) <= 0xFFFF
