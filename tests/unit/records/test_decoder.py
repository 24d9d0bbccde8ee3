"""Unit tests for user, attendance and capacity decoding."""

from __future__ import annotations

import struct
from datetime import datetime

import pytest

from tests.helpers.fake_device import capacity_body, dataset
from zk_attendance.protocol.timestamp import encode_time
from zk_attendance.records.decoder import (
    AttendanceLayout,
    UserLayout,
    decode_attendance,
    decode_string,
    decode_users,
    parse_capacity,
    select_attendance_layout,
    select_user_layout,
)
from zk_attendance.records.encoder import encode_user

pytestmark = pytest.mark.unit

PUNCH_TIME = datetime(2024, 3, 15, 8, 30, 0)


def legacy_user(uid: int, name: bytes, user_number: int, group: int = 1, card: int = 0) -> bytes:
    return struct.pack("<HB5s8sIBBHI", uid, 0, b"12", name, card, 0, group, 0, user_number)


def full_attendance(uid: int, user_id: bytes, when: datetime, status: int = 0, punch: int = 0) -> bytes:
    record = struct.pack("<H24sBIB", uid, user_id, status, encode_time(when), punch)
    return record.ljust(AttendanceLayout.FULL, b"\x00")


class TestDecodeString:
    def test_stops_at_nul(self) -> None:
        assert decode_string(b"Alice\x00garbage") == "Alice"

    def test_strips_whitespace(self) -> None:
        assert decode_string(b"  Bob \x00\x00") == "Bob"

    def test_invalid_utf8_yields_empty(self) -> None:
        assert decode_string(b"\xff\xfe\x00") == ""


class TestLayoutSelection:
    @pytest.mark.parametrize(
        ("total", "count", "expected"),
        [
            (28 * 3, 3, UserLayout.LEGACY),
            (72 * 3, 3, UserLayout.CURRENT),
            (72 * 3 + 2, 3, UserLayout.CURRENT),
            (50 * 3, 3, UserLayout.CURRENT),
        ],
    )
    def test_user_layout(self, total: int, count: int, expected: UserLayout) -> None:
        assert select_user_layout(total, count) is expected

    @pytest.mark.parametrize(
        ("total", "count", "expected"),
        [
            (8 * 10, 10, AttendanceLayout.SHORT),
            (16 * 10, 10, AttendanceLayout.NUMERIC),
            (40 * 10, 10, AttendanceLayout.FULL),
            (33 * 10, 10, AttendanceLayout.FULL),
        ],
    )
    def test_attendance_layout(self, total: int, count: int, expected: AttendanceLayout) -> None:
        assert select_attendance_layout(total, count) is expected


class TestDecodeUsers:
    def test_current_layout(self) -> None:
        data = dataset(
            [
                encode_user(UserLayout.CURRENT, uid=1, name="Alice", privilege=14, user_id="1001", card=555),
                encode_user(UserLayout.CURRENT, uid=2, group_id="7"),
            ],
        )

        users, layout = decode_users(data, 2)

        assert layout is UserLayout.CURRENT
        assert [u.uid for u in users] == [1, 2]
        assert users[0].name == "Alice"
        assert users[0].privilege == 14
        assert users[0].user_id == "1001"
        assert users[0].card == 555
        assert users[1].user_id == "2"
        assert users[1].name == "NN-2"
        assert users[1].group_id == "7"

    def test_legacy_layout(self) -> None:
        data = dataset([legacy_user(3, b"Carol", 3003, group=4, card=99), legacy_user(4, b"", 4004)])

        users, layout = decode_users(data, 2)

        assert layout is UserLayout.LEGACY
        assert users[0].name == "Carol"
        assert users[0].user_id == "3003"
        assert users[0].group_id == "4"
        assert users[0].password == "12"
        assert users[0].card == 99
        assert users[1].name == "NN-4004"

    def test_empty_buffer(self) -> None:
        assert decode_users(b"", 5) == ([], None)
        assert decode_users(dataset([]), 5) == ([], None)

    def test_zero_count(self) -> None:
        data = dataset([encode_user(UserLayout.CURRENT, uid=1)])

        assert decode_users(data, 0) == ([], None)

    def test_truncated_buffer_stops_early(self) -> None:
        data = dataset([encode_user(UserLayout.CURRENT, uid=n) for n in (1, 2)])

        users, _ = decode_users(data[:-10], 2)

        assert [u.uid for u in users] == [1]


class TestDecodeAttendance:
    def test_full_layout(self) -> None:
        data = dataset([full_attendance(1, b"1001", PUNCH_TIME, status=1, punch=4)])

        (record,) = decode_attendance(data, 1)

        assert record.uid == 1
        assert record.user_id == "1001"
        assert record.timestamp == PUNCH_TIME
        assert record.status == 1
        assert record.punch == 4

    def test_full_layout_without_user_id_uses_uid(self) -> None:
        (record,) = decode_attendance(dataset([full_attendance(9, b"", PUNCH_TIME)]), 1)

        assert record.user_id == "9"

    def test_short_layout(self) -> None:
        record_bytes = struct.pack("<HBIB", 12, 0, encode_time(PUNCH_TIME), 1)

        (record,) = decode_attendance(dataset([record_bytes]), 1)

        assert (record.uid, record.user_id, record.timestamp, record.punch) == (12, "12", PUNCH_TIME, 1)

    def test_numeric_layout(self) -> None:
        record_bytes = struct.pack("<IIBB", 70001, encode_time(PUNCH_TIME), 2, 0).ljust(16, b"\x00")

        (record,) = decode_attendance(dataset([record_bytes]), 1)

        assert record.user_id == "70001"
        assert record.status == 2

    def test_undecodable_timestamp_is_skipped(self) -> None:
        february_30 = ((24 * 12 * 31) + 1 * 31 + 29) * 86400
        bad = struct.pack("<HBIB", 1, 0, february_30, 0)
        good = struct.pack("<HBIB", 2, 0, encode_time(PUNCH_TIME), 0)

        records = decode_attendance(dataset([bad, good]), 2)

        assert [r.uid for r in records] == [2]

    def test_empty_buffer(self) -> None:
        assert decode_attendance(b"", 3) == []


class TestParseCapacity:
    def test_counters(self) -> None:
        capacity = parse_capacity(
            capacity_body(
                users_count=10,
                fingers_count=12,
                records_count=500,
                admins_count=2,
                passwords_count=1,
                fingers_capacity=3000,
                users_capacity=3000,
                records_capacity=100000,
            ),
        )

        assert capacity.users_count == 10
        assert capacity.fingers_count == 12
        assert capacity.records_count == 500
        assert capacity.admins_count == 2
        assert capacity.passwords_count == 1
        assert capacity.users_available == 2990
        assert capacity.faces_count == 0

    def test_faces_block(self) -> None:
        capacity = parse_capacity(capacity_body(faces=(8, 500)))

        assert capacity.faces_count == 8
        assert capacity.faces_capacity == 500
        assert capacity.faces_available == 492

    def test_short_body_yields_zeros(self) -> None:
        capacity = parse_capacity(b"\x01" * 40)

        assert capacity.users_count == 0
        assert capacity.records_capacity == 0

    def test_partial_faces_block_is_ignored(self) -> None:
        capacity = parse_capacity(capacity_body(users_count=1) + b"\x05\x00\x00\x00")

        assert capacity.users_count == 1
        assert capacity.faces_count == 0

    def test_as_dict_includes_available(self) -> None:
        summary = parse_capacity(capacity_body(records_count=5, records_capacity=50)).as_dict()

        assert summary["records_count"] == 5
        assert summary["records_available"] == 45
