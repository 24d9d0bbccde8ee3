"""High-level terminal client built on one Session.

ZKDevice is the entry point for applications::

    async with ZKDevice("192.168.1.201", password=1234) as device:
        users = await device.get_users()
        punches = await device.get_attendance(sort="asc")
"""

from __future__ import annotations

import struct
from datetime import date, datetime
from types import TracebackType
from typing import Final

from zk_attendance.instrumentation import timed_async
from zk_attendance.logging_abstraction import get_logger
from zk_attendance.protocol.constants import (
    CMD_ACK_OK,
    CMD_ATTLOG_RRQ,
    CMD_CLEAR_ATTLOG,
    CMD_CLEAR_DATA,
    CMD_DELETE_USER,
    CMD_DISABLEDEVICE,
    CMD_ENABLEDEVICE,
    CMD_GET_TIME,
    CMD_GET_VERSION,
    CMD_OPTIONS_RRQ,
    CMD_POWEROFF,
    CMD_REFRESHDATA,
    CMD_RESTART,
    CMD_SET_TIME,
    CMD_TESTVOICE,
    CMD_UNLOCK,
    CMD_USER_WRQ,
    CMD_USERTEMP_RRQ,
    DEFAULT_PORT,
    FCT_USER,
    USER_DEFAULT,
)
from zk_attendance.protocol.exceptions import ProtocolResponseError, ZKError
from zk_attendance.protocol.timestamp import decode_time, encode_time
from zk_attendance.protocol.zk_protocol import parse_header, response_body
from zk_attendance.records.decoder import UserLayout, decode_attendance, decode_string, decode_users
from zk_attendance.records.encoder import encode_user
from zk_attendance.records.filters import filter_attendance
from zk_attendance.records.models import Attendance, DeviceCapacity, User
from zk_attendance.transport.bulk_transfer import read_with_buffer
from zk_attendance.transport.session import Connection, Session
from zk_attendance.transport.types import TimeoutConfig

logger = get_logger(__name__)

_U32: Final = struct.Struct("<I")
_UID: Final = struct.Struct("<h")

OPTION_SERIAL_NUMBER: Final = "~SerialNumber"
OPTION_PLATFORM: Final = "~Platform"
OPTION_MAC: Final = "MAC"
OPTION_DEVICE_NAME: Final = "~DeviceName"
OPTION_FACE_VERSION: Final = "ZKFaceVersion"
OPTION_FP_VERSION: Final = "~ZKFPVersion"
OPTION_IP_ADDRESS: Final = "IPAddress"
OPTION_NET_MASK: Final = "NetMask"
OPTION_GATEWAY: Final = "GATEIPAddress"


class ZKDevice:
    """Attendance terminal client: bulk reads plus the one-shot command set."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: int = 0,
        timeout: float = 10.0,
        chunk_delay_ms: int = 10,
        connection: Connection | None = None,
    ) -> None:
        self.session: Session = Session(
            host,
            port,
            password=password,
            timeout_config=TimeoutConfig(timeout, chunk_delay_ms),
            connection=connection,
        )

    async def __aenter__(self) -> ZKDevice:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.disconnect()

    @property
    def is_connected(self) -> bool:
        return self.session.is_connected

    @property
    def capacity(self) -> DeviceCapacity:
        """Snapshot from the last read_sizes() call."""
        return self.session.capacity

    async def connect(self) -> None:
        await self.session.connect()

    async def disconnect(self) -> None:
        await self.session.disconnect()

    async def read_sizes(self) -> DeviceCapacity:
        return await self.session.read_sizes()

    async def read_with_buffer(self, command: int, fct: int = 0, ext: int = 0) -> bytes:
        return await read_with_buffer(self.session, command, fct, ext)

    async def _expect_ok(self, command: int, body: bytes = b"", failure: str = "command failed") -> bytes:
        """Send a command and raise ProtocolResponseError unless the device answers ACK_OK."""
        response = await self.session.send_command(command, body)
        response_code = parse_header(response).command
        if response_code != CMD_ACK_OK:
            raise ProtocolResponseError(failure, response_code)
        return response

    # --- bulk reads -------------------------------------------------------

    @timed_async("get_users")
    async def get_users(self) -> list[User]:
        """Read the full user table.

        The record layout detected here becomes the layout used by set_user().
        """
        capacity = await self.read_sizes()
        if capacity.users_count == 0:
            logger.debug("No users on device")
            return []

        data = await self.read_with_buffer(CMD_USERTEMP_RRQ, fct=FCT_USER)
        users, layout = decode_users(data, capacity.users_count)
        if layout is not None:
            self.session.user_packet_size = layout
        logger.debug(
            "Decoded %d of %d users",
            len(users),
            capacity.users_count,
            extra={"bytes": len(data), "layout": int(layout) if layout is not None else None},
        )
        return users

    @timed_async("get_attendance")
    async def get_attendance(
        self,
        from_date: date | None = None,
        to_date: date | None = None,
        sort: str = "desc",
    ) -> list[Attendance]:
        """Read the attendance log and filter it to a date window.

        Args:
            from_date: First day to include (default: first day of the current month)
            to_date: Last day to include (default: today)
            sort: "asc", "desc"/"dsc", or anything else to keep device order

        """
        capacity = await self.read_sizes()
        if capacity.records_count == 0:
            logger.debug("No attendance records on device")
            return []

        data = await self.read_with_buffer(CMD_ATTLOG_RRQ)
        records = decode_attendance(data, capacity.records_count)
        selected = filter_attendance(records, from_date, to_date, sort)
        logger.debug(
            "Decoded %d attendance records, %d in window",
            len(records),
            len(selected),
            extra={"bytes": len(data), "sort": sort},
        )
        return selected

    # --- users ------------------------------------------------------------

    async def set_user(
        self,
        uid: int | None = None,
        name: str = "",
        privilege: int = USER_DEFAULT,
        password: str = "",
        group_id: str = "",
        user_id: str | None = None,
        card: int = 0,
    ) -> None:
        """Create or overwrite a user, then refresh device data.

        The record is encoded in the session's current user layout.

        Raises:
            ValueError: Legacy layout with a non-numeric group_id or user_id
            ProtocolResponseError: Device rejected the record

        """
        body = encode_user(
            UserLayout(self.session.user_packet_size),
            uid=uid,
            name=name,
            privilege=privilege,
            password=password,
            group_id=group_id,
            user_id=user_id,
            card=card,
        )
        _ = await self._expect_ok(CMD_USER_WRQ, body, "can't set user")
        await self.refresh_data()

    async def delete_user(self, uid: int | None = None, user_id: str | None = None) -> None:
        """Delete a user by uid, or by user_id resolved through get_users().

        Raises:
            ProtocolResponseError: Neither key given, user_id unknown, or device refused

        """
        if uid is None:
            if user_id is None:
                msg = "either uid or user_id must be provided"
                raise ProtocolResponseError(msg)
            matches = [user for user in await self.get_users() if user.user_id == user_id]
            if not matches:
                msg = f"user {user_id!r} not found"
                raise ProtocolResponseError(msg)
            uid = matches[0].uid

        _ = await self._expect_ok(CMD_DELETE_USER, _UID.pack(uid), "can't delete user")
        await self.refresh_data()

    # --- device control ---------------------------------------------------

    async def enable_device(self) -> None:
        _ = await self._expect_ok(CMD_ENABLEDEVICE, failure="can't enable device")

    async def disable_device(self) -> None:
        _ = await self._expect_ok(CMD_DISABLEDEVICE, failure="can't disable device")

    async def refresh_data(self) -> None:
        _ = await self._expect_ok(CMD_REFRESHDATA, failure="can't refresh data")

    async def restart(self) -> None:
        """Reboot the terminal; the session is closed without sending EXIT."""
        _ = await self._expect_ok(CMD_RESTART, failure="can't restart device")
        await self.session.close()

    async def power_off(self) -> None:
        """Power the terminal off; the session is closed without sending EXIT."""
        _ = await self._expect_ok(CMD_POWEROFF, failure="can't power off device")
        await self.session.close()

    async def unlock(self, seconds: int = 3) -> None:
        # Device unit is 100 ms
        _ = await self._expect_ok(CMD_UNLOCK, _U32.pack(seconds * 10), "can't unlock door")

    async def test_voice(self, index: int = 0) -> bool:
        """Play a built-in voice prompt. Returns False instead of raising."""
        try:
            response = await self.session.send_command(CMD_TESTVOICE, _U32.pack(index))
        except ZKError as e:
            logger.debug("Voice test %d failed: %s", index, e)
            return False
        return parse_header(response).command == CMD_ACK_OK

    async def clear_data(self) -> None:
        _ = await self._expect_ok(CMD_CLEAR_DATA, failure="can't clear data")

    async def clear_attendance(self) -> None:
        _ = await self._expect_ok(CMD_CLEAR_ATTLOG, failure="can't clear attendance")

    # --- information ------------------------------------------------------

    async def get_firmware_version(self) -> str:
        response = await self.session.send_command(CMD_GET_VERSION)
        return decode_string(response_body(response))

    async def get_time(self) -> datetime:
        response = await self.session.send_command(CMD_GET_TIME)
        body = response_body(response)
        if len(body) < _U32.size:
            msg = "time reply too short"
            raise ProtocolResponseError(msg, parse_header(response).command)
        (encoded,) = _U32.unpack_from(body, 0)
        try:
            return decode_time(encoded)
        except ValueError as e:
            msg = f"invalid device time {encoded}: {e}"
            raise ProtocolResponseError(msg, parse_header(response).command) from e

    async def set_time(self, timestamp: datetime) -> None:
        _ = await self._expect_ok(CMD_SET_TIME, _U32.pack(encode_time(timestamp)), "can't set time")

    async def read_option(self, key: str) -> str:
        """Read one `key=value` option; returns "" when the device sends no value."""
        response = await self.session.send_command(CMD_OPTIONS_RRQ, f"{key}\x00".encode())
        parts = decode_string(response_body(response)).split("=")
        return parts[1] if len(parts) > 1 else ""

    async def get_serial_number(self) -> str:
        return await self.read_option(OPTION_SERIAL_NUMBER)

    async def get_platform(self) -> str:
        return await self.read_option(OPTION_PLATFORM)

    async def get_mac(self) -> str:
        return await self.read_option(OPTION_MAC)

    async def get_device_name(self) -> str:
        try:
            return await self.read_option(OPTION_DEVICE_NAME)
        except ZKError as e:
            logger.debug("Device name unavailable: %s", e)
            return ""

    async def get_face_version(self) -> int | None:
        """Face algorithm version; 0 when unset, None when the read fails."""
        try:
            value = await self.read_option(OPTION_FACE_VERSION)
        except ZKError as e:
            logger.debug("Face version unavailable: %s", e)
            return None
        return _parse_int(value)

    async def get_fingerprint_version(self) -> int:
        try:
            value = await self.read_option(OPTION_FP_VERSION)
        except ZKError as e:
            msg = "can't read fingerprint version"
            raise ProtocolResponseError(msg) from e
        return _parse_int(value)

    async def get_network_params(self) -> dict[str, str]:
        """IP address, netmask and gateway; fields that fail to read are left at defaults."""
        params = {"ip": self.session.host, "mask": "", "gateway": ""}
        for field, key in (("ip", OPTION_IP_ADDRESS), ("mask", OPTION_NET_MASK), ("gateway", OPTION_GATEWAY)):
            try:
                value = await self.read_option(key)
            except ZKError as e:
                logger.debug("Error reading %s: %s", key, e)
                continue
            if value:
                params[field] = value
        return params

    def __repr__(self) -> str:
        return f"ZKDevice({self.session!r})"


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0
