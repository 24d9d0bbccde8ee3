"""Device timestamp codec.

Terminals store time as a packed 32-bit count that treats every month as
31 days and every year as 12 * 31 days. The arithmetic below matches the
firmware, not the calendar.
"""

from __future__ import annotations

from datetime import datetime

__all__ = ["decode_time", "encode_time"]

_SECONDS_PER_DAY = 24 * 60 * 60


def decode_time(t: int) -> datetime:
    """Convert a device timestamp to a naive local datetime.

    Raises:
        ValueError: If the packed value names a day the calendar does not have
            (e.g. February 30th)

    """
    second = t % 60
    t //= 60
    minute = t % 60
    t //= 60
    hour = t % 24
    t //= 24
    day = t % 31 + 1
    t //= 31
    month = t % 12 + 1
    t //= 12
    year = t + 2000
    return datetime(year, month, day, hour, minute, second)  # noqa: DTZ001


def encode_time(t: datetime) -> int:
    """Convert a datetime to the device's packed timestamp."""
    days = (t.year % 100) * 12 * 31 + (t.month - 1) * 31 + t.day - 1
    return days * _SECONDS_PER_DAY + (t.hour * 60 + t.minute) * 60 + t.second
