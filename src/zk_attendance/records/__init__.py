"""Record models plus the binary user / attendance layouts."""

from .models import Attendance, DeviceCapacity, User

__all__ = ["Attendance", "DeviceCapacity", "User"]
