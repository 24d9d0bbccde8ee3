"""User record encoder for CMD_USER_WRQ."""

from __future__ import annotations

import struct

from zk_attendance.protocol.constants import USER_DEFAULT, VALID_PRIVILEGES
from zk_attendance.records.decoder import UserLayout

__all__ = ["encode_user", "pad_field"]


def pad_field(value: str, width: int) -> bytes:
    """Encode, truncate and NUL-pad a string field to exactly width bytes."""
    return value.encode("utf-8")[:width].ljust(width, b"\x00")


def encode_user(
    layout: UserLayout,
    *,
    uid: int | None = None,
    name: str = "",
    privilege: int = USER_DEFAULT,
    password: str = "",
    group_id: str = "",
    user_id: str | None = None,
    card: int = 0,
) -> bytes:
    """Encode a user record in the given layout.

    Unknown privileges are clamped to USER_DEFAULT. A missing user_id
    defaults to the uid.

    Raises:
        ValueError: 28-byte layout with a non-numeric group_id or user_id

    """
    if privilege not in VALID_PRIVILEGES:
        privilege = USER_DEFAULT
    uid_value = uid or 0

    if layout == UserLayout.LEGACY:
        user_number = int(user_id if user_id is not None else str(uid_value))
        return struct.pack(
            "<HB5s8sIBBHI",
            uid_value,
            privilege,
            pad_field(password, 5),
            pad_field(name, 8),
            card,
            0,
            int(group_id or "0"),
            0,  # timezone
            user_number,
        )

    user_id_text = user_id if user_id is not None else (str(uid) if uid is not None else "")
    return struct.pack(
        "<HB8s24sIB7sB24s",
        uid_value,
        privilege,
        pad_field(password, 8),
        pad_field(name, 24),
        card,
        0,
        pad_field(group_id, 7),
        0,
        pad_field(user_id_text, 24),
    )
