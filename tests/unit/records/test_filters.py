"""Unit tests for attendance date filtering and ordering."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from zk_attendance.records.filters import attendance_window, filter_attendance
from zk_attendance.records.models import Attendance

pytestmark = pytest.mark.unit

NOW = datetime(2024, 3, 20, 14, 0, 0)


def punch(when: datetime, uid: int = 1) -> Attendance:
    return Attendance(uid=uid, user_id=str(uid), timestamp=when, status=0, punch=0)


RECORDS = [
    punch(datetime(2024, 3, 10, 9, 0), uid=2),
    punch(datetime(2024, 2, 28, 9, 0), uid=1),
    punch(datetime(2024, 3, 1, 0, 0, 0), uid=3),
    punch(datetime(2024, 3, 20, 23, 59, 59), uid=4),
    punch(datetime(2024, 3, 21, 0, 0, 0), uid=5),
]


class TestAttendanceWindow:
    def test_defaults_to_current_month(self) -> None:
        start, end = attendance_window(now=NOW)

        assert start == datetime(2024, 3, 1)
        assert end == datetime(2024, 3, 20, 23, 59, 59, 999000)

    def test_explicit_range(self) -> None:
        start, end = attendance_window(date(2024, 1, 5), date(2024, 1, 6), now=NOW)

        assert start == datetime(2024, 1, 5)
        assert end == datetime(2024, 1, 6, 23, 59, 59, 999000)


class TestFilterAttendance:
    def test_default_window_and_descending_order(self) -> None:
        result = filter_attendance(RECORDS, now=NOW)

        assert [r.uid for r in result] == [4, 2, 3]

    def test_ascending_order(self) -> None:
        result = filter_attendance(RECORDS, sort="ASC", now=NOW)

        assert [r.uid for r in result] == [3, 2, 4]

    def test_dsc_alias(self) -> None:
        assert filter_attendance(RECORDS, sort="dsc", now=NOW) == filter_attendance(RECORDS, sort="desc", now=NOW)

    def test_unknown_sort_keeps_device_order(self) -> None:
        result = filter_attendance(RECORDS, sort="none", now=NOW)

        assert [r.uid for r in result] == [2, 3, 4]

    def test_explicit_range_includes_whole_last_day(self) -> None:
        result = filter_attendance(RECORDS, date(2024, 2, 1), date(2024, 3, 21), sort="asc", now=NOW)

        assert [r.uid for r in result] == [1, 3, 2, 4, 5]

    def test_empty_input(self) -> None:
        assert filter_attendance([], now=NOW) == []
