"""Dataclasses for records read from the terminal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """One enrolled user.

    Attributes:
        uid: Internal slot number (16-bit)
        name: Display name ("NN-<user_id>" when the device stores none)
        privilege: 0 user, 2 enroller, 6 manager, 14 admin
        password: Keypad password
        group_id: Group identifier as stored on the device
        user_id: Badge / employee number shown on the terminal
        card: RFID card number
    """

    uid: int
    name: str
    privilege: int = 0
    password: str = ""
    group_id: str = ""
    user_id: str = ""
    card: int = 0

    def __str__(self) -> str:
        return f"<User>: [uid:{self.uid}, name:{self.name}, user_id:{self.user_id}]"


@dataclass(frozen=True)
class Attendance:
    """One punch from the attendance log."""

    uid: int
    user_id: str
    timestamp: datetime
    status: int
    punch: int

    def __str__(self) -> str:
        return f"<Attendance>: {self.user_id} : {self.timestamp} ({self.status}, {self.punch})"


@dataclass
class DeviceCapacity:
    """Counters reported by CMD_GET_FREE_SIZES.

    A snapshot: refreshed by each capacity query, never updated in between.
    """

    users_count: int = 0
    fingers_count: int = 0
    records_count: int = 0
    admins_count: int = 0
    passwords_count: int = 0
    fingers_capacity: int = 0
    users_capacity: int = 0
    records_capacity: int = 0
    faces_count: int = 0
    faces_capacity: int = 0

    @property
    def users_available(self) -> int:
        return self.users_capacity - self.users_count

    @property
    def fingers_available(self) -> int:
        return self.fingers_capacity - self.fingers_count

    @property
    def records_available(self) -> int:
        return self.records_capacity - self.records_count

    @property
    def faces_available(self) -> int:
        return self.faces_capacity - self.faces_count

    def as_dict(self) -> dict[str, int]:
        """Counters plus the derived *_available values."""
        return {
            **{name: getattr(self, name) for name in self.__dataclass_fields__},
            "users_available": self.users_available,
            "fingers_available": self.fingers_available,
            "records_available": self.records_available,
            "faces_available": self.faces_available,
        }
