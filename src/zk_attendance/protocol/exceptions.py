"""Custom exception types for ZK protocol errors.

This module defines the root of the exception hierarchy. Errors raise
exceptions instead of returning None or sentinel response codes.
"""

from __future__ import annotations


class ZKError(Exception):
    """Base exception for all ZK terminal errors.

    All client exceptions inherit from this base class, enabling catch-all
    error handling at the CLI boundary while keeping specific types for
    detailed handling.

    Attributes:
        reason: Specific failure reason

    """

    def __init__(self, reason: str, message: str | None = None) -> None:
        self.reason: str = reason
        super().__init__(message or reason)


class ProtocolResponseError(ZKError):
    """Device returned an unexpected or error response.

    Raised when:
    - A command is answered with a non-OK response code
    - A response body is too short for the structure it should carry
    - The device refuses to free its transfer buffer

    Attributes:
        reason: Specific failure reason
        response_code: Response code the device sent (None when not applicable)

    """

    def __init__(self, reason: str, response_code: int | None = None) -> None:
        self.response_code: int | None = response_code
        suffix = f" (code: {response_code})" if response_code is not None else ""
        super().__init__(reason, f"Protocol response error: {reason}{suffix}")


class AuthenticationError(ProtocolResponseError):
    """Device rejected the AUTH command sent during the handshake."""

    def __init__(self, response_code: int) -> None:
        super().__init__("authentication failed", response_code)


class PacketDecodeError(ProtocolResponseError):
    """Inner command packet cannot be decoded.

    Attributes:
        reason: Specific failure reason (e.g., "malformed_header")
        data_preview: First 16 bytes of packet data (keeps credentials out of logs)

    """

    def __init__(self, reason: str, data: bytes = b"") -> None:
        super().__init__(reason)
        self.data_preview: bytes = data[:16] if data else b""
        self.args = (f"Packet decode failed: {reason}",)
