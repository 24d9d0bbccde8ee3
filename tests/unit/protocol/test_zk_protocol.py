"""Unit tests for command packet encoding and the AUTH key."""

from __future__ import annotations

import pytest

from tests.helpers.expectations import expect_exception
from zk_attendance.protocol.constants import CMD_ACK_OK, CMD_CONNECT, CMD_GET_TIME, USHRT_MAX
from zk_attendance.protocol.exceptions import PacketDecodeError
from zk_attendance.protocol.zk_protocol import (
    CommandHeader,
    build_command_packet,
    make_command_key,
    parse_header,
    response_body,
    verify_checksum,
)

pytestmark = pytest.mark.unit


class TestBuildCommandPacket:
    def test_connect_packet_bytes(self) -> None:
        assert build_command_packet(CMD_CONNECT, 0, 0) == bytes.fromhex("e80317fc00000000")

    def test_header_fields_parse_back(self) -> None:
        packet = build_command_packet(CMD_GET_TIME, 0x1234, 42, b"\x01\x02")

        header = parse_header(packet)
        assert header == CommandHeader(CMD_GET_TIME, header.checksum, 0x1234, 42)
        assert response_body(packet) == b"\x01\x02"

    def test_checksum_is_valid(self) -> None:
        packet = build_command_packet(CMD_ACK_OK, 0xBEEF, USHRT_MAX, b"odd")

        assert verify_checksum(packet)

    def test_tampered_packet_fails_checksum(self) -> None:
        packet = bytearray(build_command_packet(CMD_ACK_OK, 1, 2, b"data"))
        packet[-1] ^= 0xFF

        assert not verify_checksum(bytes(packet))


class TestParseHeader:
    def test_short_packet_raises(self) -> None:
        err = expect_exception(parse_header, PacketDecodeError, b"\xe8\x03\x17")

        assert "malformed header" in err.reason
        assert err.data_preview == b"\xe8\x03\x17"

    def test_extra_bytes_are_ignored(self) -> None:
        header = parse_header(build_command_packet(CMD_ACK_OK, 5, 6, b"x" * 20))

        assert (header.command, header.session_id, header.reply_id) == (CMD_ACK_OK, 5, 6)

    def test_empty_body(self) -> None:
        assert response_body(build_command_packet(CMD_ACK_OK, 0, 0)) == b""


class TestMakeCommandKey:
    @pytest.mark.parametrize(
        ("key", "session_id", "expected"),
        [
            (0, 1, b"\x61\x7d\x32\x79"),
            (1, 0, b"\x61\xfd\x32\x79"),
        ],
    )
    def test_known_keys(self, key: int, session_id: int, expected: bytes) -> None:
        assert make_command_key(key, session_id) == expected

    def test_third_byte_is_ticks(self) -> None:
        assert make_command_key(1234, 0x5678, ticks=0x1FF)[2] == 0xFF

    def test_length_is_four(self) -> None:
        assert len(make_command_key(999999, 0xFFFF)) == 4

    def test_depends_on_session(self) -> None:
        assert make_command_key(1234, 1) != make_command_key(1234, 2)
