"""Binary record decoders for buffered transfer payloads.

A user table or attendance log arrives as one buffer: a 4-byte little-endian
total size followed by fixed-width records. The record width is not sent, so
it is inferred by dividing the total size by the record count from the last
capacity query and matching the quotient against the known layouts.

User layouts:

    | Layout  | Width | uid     | privilege | password | name     | card     | group    | user_id  |
    |---------|-------|---------|-----------|----------|----------|----------|----------|----------|
    | legacy  | 28    | 0, u16  | 2, u8     | 3, 5B    | 8, 8B    | 16, u32  | 21, u8   | 24, u32  |
    | current | 72    | 0, u16  | 2, u8     | 3, 8B    | 11, 24B  | 35, u32  | 40, 7B   | 48, 24B  |

Attendance layouts:

    - 8 bytes: uid u16, status u8, timestamp u32, punch u8
    - 16 bytes: user_id u32, timestamp u32, status u8, punch u8, reserved
    - 40 bytes: uid u16, user_id 24B, status u8, timestamp u32, punch u8, reserved
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from enum import IntEnum
from typing import Final, TypeVar

from zk_attendance.logging_abstraction import get_logger
from zk_attendance.metrics import registry
from zk_attendance.protocol.timestamp import decode_time
from zk_attendance.records.models import Attendance, DeviceCapacity, User

logger = get_logger(__name__)

T = TypeVar("T")
L = TypeVar("L", bound=IntEnum)

SIZE_HEADER_LENGTH: Final = 4
LAYOUT_TOLERANCE: Final = 1.0
CAPACITY_BLOCK_LENGTH: Final = 80
FACES_BLOCK_LENGTH: Final = 12


class UserLayout(IntEnum):
    """User record widths."""

    LEGACY = 28
    CURRENT = 72


class AttendanceLayout(IntEnum):
    """Attendance record widths."""

    SHORT = 8
    NUMERIC = 16
    FULL = 40


def decode_string(data: bytes) -> str:
    """Decode a NUL-terminated UTF-8 field and trim whitespace.

    Undecodable bytes yield an empty string rather than an error.
    """
    end = data.find(b"\x00")
    raw = data if end < 0 else data[:end]
    try:
        return raw.decode("utf-8").strip()
    except UnicodeDecodeError:
        logger.debug("Undecodable string field", extra={"raw": raw.hex()})
        return ""


def _match_layout(quotient: float, candidates: tuple[L, ...], fallback: L) -> L:
    for layout in candidates:
        if abs(quotient - layout) < LAYOUT_TOLERANCE:
            return layout
    return fallback


def select_user_layout(total_size: int, count: int) -> UserLayout:
    """Pick the user layout whose width matches total_size / count.

    An unrecognized quotient falls back to the 72-byte layout.
    """
    quotient = total_size / count
    layout = _match_layout(quotient, (UserLayout.LEGACY, UserLayout.CURRENT), UserLayout.CURRENT)
    if abs(quotient - layout) >= LAYOUT_TOLERANCE:
        logger.warning(
            "Unusual user record size %.2f, using %d",
            quotient,
            layout,
            extra={"total_size": total_size, "count": count},
        )
    return layout


def select_attendance_layout(total_size: int, count: int) -> AttendanceLayout:
    """Pick the attendance layout whose width matches total_size / count.

    An unrecognized quotient falls back to the 40-byte layout.
    """
    quotient = total_size / count
    return _match_layout(
        quotient,
        (AttendanceLayout.SHORT, AttendanceLayout.NUMERIC, AttendanceLayout.FULL),
        AttendanceLayout.FULL,
    )


def _decode_legacy_user(record: bytes) -> User:
    uid, privilege = struct.unpack_from("<HB", record, 0)
    card = struct.unpack_from("<I", record, 16)[0]
    group_id = str(record[21])
    user_id = str(struct.unpack_from("<I", record, 24)[0])
    name = decode_string(record[8:16])
    return User(
        uid=uid,
        name=name or f"NN-{user_id}",
        privilege=privilege,
        password=decode_string(record[3:8]),
        group_id=group_id,
        user_id=user_id,
        card=card,
    )


def _decode_current_user(record: bytes) -> User:
    uid, privilege = struct.unpack_from("<HB", record, 0)
    card = struct.unpack_from("<I", record, 35)[0]
    user_id = decode_string(record[48:72])
    name = decode_string(record[11:35])
    return User(
        uid=uid,
        name=name or f"NN-{user_id}",
        privilege=privilege,
        password=decode_string(record[3:11]),
        group_id=decode_string(record[40:47]),
        user_id=user_id or str(uid),
        card=card,
    )


def _decode_short_attendance(record: bytes) -> Attendance:
    uid, status, timestamp, punch = struct.unpack_from("<HBIB", record, 0)
    return Attendance(uid=uid, user_id=str(uid), timestamp=decode_time(timestamp), status=status, punch=punch)


def _decode_numeric_attendance(record: bytes) -> Attendance:
    user_number, timestamp, status, punch = struct.unpack_from("<IIBB", record, 0)
    return Attendance(
        uid=user_number,
        user_id=str(user_number),
        timestamp=decode_time(timestamp),
        status=status,
        punch=punch,
    )


def _decode_full_attendance(record: bytes) -> Attendance:
    uid = struct.unpack_from("<H", record, 0)[0]
    user_id = decode_string(record[2:26])
    status, timestamp, punch = struct.unpack_from("<BIB", record, 26)
    return Attendance(
        uid=uid,
        user_id=user_id or str(uid),
        timestamp=decode_time(timestamp),
        status=status,
        punch=punch,
    )


_USER_DECODERS: Final[dict[UserLayout, Callable[[bytes], User]]] = {
    UserLayout.LEGACY: _decode_legacy_user,
    UserLayout.CURRENT: _decode_current_user,
}

_ATTENDANCE_DECODERS: Final[dict[AttendanceLayout, Callable[[bytes], Attendance]]] = {
    AttendanceLayout.SHORT: _decode_short_attendance,
    AttendanceLayout.NUMERIC: _decode_numeric_attendance,
    AttendanceLayout.FULL: _decode_full_attendance,
}


def _total_size(data: bytes) -> int:
    if len(data) <= SIZE_HEADER_LENGTH:
        return 0
    return struct.unpack_from("<I", data, 0)[0]


def _decode_records(
    data: bytes,
    count: int,
    width: int,
    decode: Callable[[bytes], T],
    kind: str,
) -> list[T]:
    records: list[T] = []
    offset = SIZE_HEADER_LENGTH
    for index in range(count):
        if offset + width > len(data):
            logger.debug(
                "Buffer ends before %s record %d of %d",
                kind,
                index + 1,
                count,
                extra={"offset": offset, "width": width, "buffer_size": len(data)},
            )
            break
        try:
            records.append(decode(data[offset : offset + width]))
        except (ValueError, struct.error) as e:
            logger.debug(
                "Skipping undecodable %s record %d: %s",
                kind,
                index,
                e,
                extra={"offset": offset, "width": width},
            )
            registry.record_record_decode_error(kind)
        offset += width
    registry.record_records_decoded(kind, width, len(records))
    return records


def decode_users(data: bytes, count: int) -> tuple[list[User], UserLayout | None]:
    """Decode a user table buffer.

    Args:
        data: Buffer from the CMD_USERTEMP_RRQ transfer (size header included)
        count: users_count from the last capacity query

    Returns:
        (users, layout); layout is None when the buffer holds no records

    """
    total_size = _total_size(data)
    if count <= 0 or total_size == 0:
        return [], None
    layout = select_user_layout(total_size, count)
    return _decode_records(data, count, layout, _USER_DECODERS[layout], "user"), layout


def decode_attendance(data: bytes, count: int) -> list[Attendance]:
    """Decode an attendance log buffer.

    Args:
        data: Buffer from the CMD_ATTLOG_RRQ transfer (size header included)
        count: records_count from the last capacity query

    """
    total_size = _total_size(data)
    if count <= 0 or total_size == 0:
        return []
    layout = select_attendance_layout(total_size, count)
    return _decode_records(data, count, layout, _ATTENDANCE_DECODERS[layout], "attendance")


def parse_capacity(body: bytes) -> DeviceCapacity:
    """Parse a CMD_GET_FREE_SIZES reply body.

    The 80-byte block holds signed 32-bit counters at fixed slots. The
    optional 12-byte faces block that follows it is read only when the
    80-byte block is present.
    """
    capacity = DeviceCapacity()
    if len(body) < CAPACITY_BLOCK_LENGTH:
        return capacity

    slots = struct.unpack_from("<20i", body, 0)
    capacity.users_count = slots[4]
    capacity.fingers_count = slots[6]
    capacity.records_count = slots[8]
    capacity.admins_count = slots[10]
    capacity.passwords_count = slots[12]
    capacity.fingers_capacity = slots[14]
    capacity.users_capacity = slots[15]
    capacity.records_capacity = slots[16]

    faces = body[CAPACITY_BLOCK_LENGTH:]
    if len(faces) >= FACES_BLOCK_LENGTH:
        capacity.faces_count, _, capacity.faces_capacity = struct.unpack_from("<iii", faces, 0)
    return capacity
