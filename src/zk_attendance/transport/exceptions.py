"""Custom exception types for transport layer errors.

This module extends the protocol exception root with socket and session
state failures.
"""

from __future__ import annotations

from zk_attendance.protocol.exceptions import ZKError


class NetworkError(ZKError):
    """Socket level failure (connect, write, remote close).

    Raised when:
    - TCP connect fails or times out
    - Writing a command to the socket fails
    - The connection is lost while a command is in flight

    Attributes:
        reason: Specific failure reason

    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason, f"Network error: {reason}")


class CommandTimeoutError(NetworkError):
    """No reply arrived within the per-command (or bulk data) timeout.

    Only the waiting caller is failed; the socket stays open.

    Attributes:
        command: Command code that timed out
        timeout_seconds: Timeout value that was exceeded

    """

    def __init__(self, command: int, timeout_seconds: float) -> None:
        self.command: int = command
        self.timeout_seconds: float = timeout_seconds
        super().__init__(f"command {command} timed out after {timeout_seconds}s")


class ConnectionStateError(ZKError):
    """Connection state error (not connected, socket missing).

    Note: Named ConnectionStateError to avoid shadowing Python's built-in ConnectionError.

    Attributes:
        reason: Specific failure reason
        state: Session state when error occurred

    """

    def __init__(self, reason: str, state: str = "unknown") -> None:
        self.state: str = state
        super().__init__(reason, f"Connection error: {reason} (state: {state})")
