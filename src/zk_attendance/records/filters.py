"""Attendance date filtering and ordering."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from zk_attendance.const import LOCAL_TZ
from zk_attendance.records.models import Attendance

__all__ = ["attendance_window", "filter_attendance"]

SORT_ASC = "asc"
SORT_DESC = ("desc", "dsc")


def attendance_window(
    from_date: date | None = None,
    to_date: date | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Normalize a date range to [from 00:00:00, to 23:59:59.999].

    Defaults run from the first day of the current month through today,
    in the host's local timezone (device clocks are local and naive).
    """
    now = now or datetime.now(LOCAL_TZ).replace(tzinfo=None)
    if from_date is None:
        from_date = date(now.year, now.month, 1)
    if to_date is None:
        to_date = now
    start = datetime(from_date.year, from_date.month, from_date.day)  # noqa: DTZ001
    end = datetime(to_date.year, to_date.month, to_date.day, 23, 59, 59, 999000)  # noqa: DTZ001
    return start, end


def filter_attendance(
    records: Iterable[Attendance],
    from_date: date | None = None,
    to_date: date | None = None,
    sort: str = "desc",
    now: datetime | None = None,
) -> list[Attendance]:
    """Keep records inside the normalized window and order them.

    Args:
        records: Decoded attendance records (device order)
        from_date: First day to include (default: first of the current month)
        to_date: Last day to include (default: today)
        sort: "asc", "desc" or "dsc"; any other value keeps device order
        now: Reference time for the defaults

    """
    start, end = attendance_window(from_date, to_date, now)
    selected = [record for record in records if start <= record.timestamp <= end]

    order = sort.lower()
    if order == SORT_ASC:
        selected.sort(key=lambda record: record.timestamp)
    elif order in SORT_DESC:
        selected.sort(key=lambda record: record.timestamp, reverse=True)
    return selected
