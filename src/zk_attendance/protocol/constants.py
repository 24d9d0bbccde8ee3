"""ZK terminal protocol constants.

Command Flow Overview:
- 1000-1102: Session and device control (client → device)
- 1500-1504: Buffered bulk transfer (PREPARE_DATA / DATA / FREE_DATA)
- 2000-2005: Acknowledgments (device → client)
- 8-202: Data commands (users, attendance log, options, clock)
"""

from typing import Final

# Envelope Constants
MACHINE_PREPARE_DATA_1: Final = 0x5050
MACHINE_PREPARE_DATA_2: Final = 0x7D82
ENVELOPE_HEADER_LENGTH: Final = 8
COMMAND_HEADER_LENGTH: Final = 8

USHRT_MAX: Final = 65535
DEFAULT_PORT: Final = 4370
MAX_CHUNK: Final = 65472  # 0xFFC0, largest chunk a TCP read-buffer request may ask for
AUTH_TICKS: Final = 50

# Session and Device Control
CMD_CONNECT: Final = 1000
CMD_EXIT: Final = 1001
CMD_ENABLEDEVICE: Final = 1002
CMD_DISABLEDEVICE: Final = 1003
CMD_RESTART: Final = 1004
CMD_POWEROFF: Final = 1005
CMD_REFRESHDATA: Final = 1013
CMD_TESTVOICE: Final = 1017
CMD_GET_VERSION: Final = 1100
CMD_AUTH: Final = 1102

# Buffered Transfer
CMD_PREPARE_DATA: Final = 1500
CMD_DATA: Final = 1501
CMD_FREE_DATA: Final = 1502
CMD_DATA_WRRQ: Final = 1503  # read with buffer
CMD_READ_BUFFER_CHUNK: Final = 1504

# Acknowledgments
CMD_ACK_OK: Final = 2000
CMD_ACK_ERROR: Final = 2001
CMD_ACK_DATA: Final = 2002
CMD_ACK_RETRY: Final = 2003
CMD_ACK_REPEAT: Final = 2004
CMD_ACK_UNAUTH: Final = 2005
CMD_ACK_UNKNOWN: Final = 0xFFFF
CMD_ACK_ERROR_CMD: Final = 0xFFFD
CMD_ACK_ERROR_INIT: Final = 0xFFFC
CMD_ACK_ERROR_DATA: Final = 0xFFFB

# Data Commands
CMD_USER_WRQ: Final = 8
CMD_USERTEMP_RRQ: Final = 9
CMD_OPTIONS_RRQ: Final = 11
CMD_ATTLOG_RRQ: Final = 13
CMD_CLEAR_DATA: Final = 14
CMD_CLEAR_ATTLOG: Final = 15
CMD_DELETE_USER: Final = 18
CMD_UNLOCK: Final = 31
CMD_GET_FREE_SIZES: Final = 50
CMD_GET_TIME: Final = 201
CMD_SET_TIME: Final = 202

# Function Codes (read-with-buffer table selector)
FCT_ATTLOG: Final = 1
FCT_FINGERTMP: Final = 2
FCT_OPLOG: Final = 4
FCT_USER: Final = 5
FCT_SMS: Final = 6
FCT_UDATA: Final = 7
FCT_WORKCODE: Final = 8

# User Privileges
USER_DEFAULT: Final = 0
USER_ENROLLER: Final = 2
USER_MANAGER: Final = 6
USER_ADMIN: Final = 14
VALID_PRIVILEGES: Final = frozenset({USER_DEFAULT, USER_ENROLLER, USER_MANAGER, USER_ADMIN})

# Attendance Status
STATUS_CHECK_IN: Final = 0
STATUS_CHECK_OUT: Final = 1
STATUS_BREAK_OUT: Final = 2
STATUS_BREAK_IN: Final = 3
STATUS_OVERTIME_IN: Final = 4
STATUS_OVERTIME_OUT: Final = 5

COMMAND_NAMES: Final[dict[int, str]] = {
    CMD_CONNECT: "connect",
    CMD_EXIT: "exit",
    CMD_ENABLEDEVICE: "enable_device",
    CMD_DISABLEDEVICE: "disable_device",
    CMD_RESTART: "restart",
    CMD_POWEROFF: "power_off",
    CMD_REFRESHDATA: "refresh_data",
    CMD_TESTVOICE: "test_voice",
    CMD_GET_VERSION: "get_version",
    CMD_AUTH: "auth",
    CMD_FREE_DATA: "free_data",
    CMD_DATA_WRRQ: "read_with_buffer",
    CMD_READ_BUFFER_CHUNK: "read_buffer_chunk",
    CMD_USER_WRQ: "user_write",
    CMD_USERTEMP_RRQ: "user_read",
    CMD_OPTIONS_RRQ: "options_read",
    CMD_ATTLOG_RRQ: "attlog_read",
    CMD_CLEAR_DATA: "clear_data",
    CMD_CLEAR_ATTLOG: "clear_attlog",
    CMD_DELETE_USER: "delete_user",
    CMD_UNLOCK: "unlock",
    CMD_GET_FREE_SIZES: "get_free_sizes",
    CMD_GET_TIME: "get_time",
    CMD_SET_TIME: "set_time",
}


def command_name(command: int) -> str:
    """Return a stable label for a command code (used in logs and metric labels)."""
    return COMMAND_NAMES.get(command, str(command))
