"""Unit tests for protocol, transport and configuration exceptions."""

from __future__ import annotations

from pathlib import Path

from zk_attendance.protocol.constants import CMD_ACK_ERROR, CMD_ACK_UNAUTH, CMD_GET_TIME
from zk_attendance.protocol.exceptions import (
    AuthenticationError,
    PacketDecodeError,
    ProtocolResponseError,
    ZKError,
)
from zk_attendance.settings import ConfigError
from zk_attendance.transport.exceptions import CommandTimeoutError, ConnectionStateError, NetworkError


class TestExceptionHierarchy:
    """Tests for exception inheritance."""

    def test_all_exceptions_inherit_from_zk_error(self):
        """Every client error can be caught with ZKError."""
        for exc_type in (
            ProtocolResponseError,
            AuthenticationError,
            PacketDecodeError,
            NetworkError,
            CommandTimeoutError,
            ConnectionStateError,
            ConfigError,
        ):
            assert issubclass(exc_type, ZKError)

    def test_timeout_is_a_network_error(self):
        assert issubclass(CommandTimeoutError, NetworkError)

    def test_authentication_and_decode_errors_are_response_errors(self):
        assert issubclass(AuthenticationError, ProtocolResponseError)
        assert issubclass(PacketDecodeError, ProtocolResponseError)

    def test_connection_state_error_does_not_shadow_builtin(self):
        assert not issubclass(ConnectionStateError, ConnectionError)


class TestProtocolResponseError:
    """Tests for ProtocolResponseError."""

    def test_with_response_code(self):
        error = ProtocolResponseError("read sizes failed", CMD_ACK_ERROR)
        assert error.reason == "read sizes failed"
        assert error.response_code == CMD_ACK_ERROR
        assert str(error) == f"Protocol response error: read sizes failed (code: {CMD_ACK_ERROR})"

    def test_without_response_code(self):
        error = ProtocolResponseError("buffer size reply too short")
        assert error.response_code is None
        assert "code" not in str(error)


class TestAuthenticationError:
    def test_carries_device_code(self):
        error = AuthenticationError(CMD_ACK_UNAUTH)
        assert error.reason == "authentication failed"
        assert error.response_code == CMD_ACK_UNAUTH
        assert "authentication failed" in str(error)


class TestPacketDecodeError:
    """Tests for PacketDecodeError."""

    def test_preview_is_truncated(self):
        error = PacketDecodeError("malformed header", bytes(range(40)))
        assert error.data_preview == bytes(range(16))
        assert str(error) == "Packet decode failed: malformed header"

    def test_empty_preview(self):
        error = PacketDecodeError("malformed header")
        assert error.data_preview == b""


class TestNetworkErrors:
    """Tests for NetworkError and CommandTimeoutError."""

    def test_network_error_message(self):
        error = NetworkError("connection lost: remote_closed")
        assert error.reason == "connection lost: remote_closed"
        assert str(error) == "Network error: connection lost: remote_closed"

    def test_command_timeout(self):
        error = CommandTimeoutError(CMD_GET_TIME, 2.5)
        assert error.command == CMD_GET_TIME
        assert error.timeout_seconds == 2.5
        assert "timed out after 2.5s" in str(error)


class TestConnectionStateError:
    """Tests for ConnectionStateError."""

    def test_default_state(self):
        error = ConnectionStateError("not connected")
        assert error.state == "unknown"
        assert "not connected" in str(error)

    def test_with_state(self):
        error = ConnectionStateError("socket is not available", "connecting")
        assert error.state == "connecting"
        assert "connecting" in str(error)


class TestConfigError:
    def test_with_path(self):
        error = ConfigError("config file not found", Path("/etc/zk.yaml"))
        assert error.path == Path("/etc/zk.yaml")
        assert str(error) == "Configuration error (/etc/zk.yaml): config file not found"

    def test_without_path(self):
        error = ConfigError("port: Input should be less than or equal to 65535")
        assert error.path is None
        assert str(error).startswith("Configuration error: port")
