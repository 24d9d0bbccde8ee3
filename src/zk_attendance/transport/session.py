"""Session lifecycle: connect, authenticate, command/reply, disconnect.

This module implements the Session class which owns all mutable per-device
state (socket, session id, reply-id counter, receive buffer, reply waiters,
capacity snapshot) and drives the handshake with the terminal.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Protocol

from zk_attendance.correlation import correlation_context, ensure_correlation_id, get_correlation_id
from zk_attendance.logging_abstraction import get_logger
from zk_attendance.metrics import registry
from zk_attendance.protocol.constants import (
    CMD_ACK_OK,
    CMD_ACK_UNAUTH,
    CMD_AUTH,
    CMD_CONNECT,
    CMD_EXIT,
    CMD_GET_FREE_SIZES,
    DEFAULT_PORT,
    USHRT_MAX,
    command_name,
)
from zk_attendance.protocol.exceptions import (
    AuthenticationError,
    PacketDecodeError,
    ProtocolResponseError,
    ZKError,
)
from zk_attendance.protocol.packet_framer import Envelope, EnvelopeFramer
from zk_attendance.protocol.zk_protocol import (
    build_command_packet,
    make_command_key,
    parse_header,
    response_body,
)
from zk_attendance.records.decoder import UserLayout, parse_capacity
from zk_attendance.records.models import DeviceCapacity
from zk_attendance.transport.exceptions import (
    CommandTimeoutError,
    ConnectionStateError,
    NetworkError,
)
from zk_attendance.transport.reply_router import ReplyRouter
from zk_attendance.transport.socket_abstraction import TCPConnection
from zk_attendance.transport.types import TimeoutConfig

logger = get_logger(__name__)

_REPLY_ID_MODULUS = USHRT_MAX + 1


class SessionState(Enum):
    """Session state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    UNAUTHENTICATED = "unauthenticated"
    CONNECTED = "connected"


class Connection(Protocol):
    """Byte stream the session runs over (TCPConnection in production)."""

    host: str
    port: int

    async def connect(self) -> None: ...

    async def send(self, data: bytes) -> None: ...

    async def recv(self) -> bytes: ...

    async def close(self) -> None: ...

    @property
    def is_connected(self) -> bool: ...


class Session:
    """One persistent connection to a terminal.

    State machine: DISCONNECTED → CONNECTING → (UNAUTHENTICATED →) CONNECTED → DISCONNECTED

    **Serialization**: send_command() holds `_command_lock` from reply-id
    assignment until the reply (or timeout), so at most one correlated
    command is in flight. `bulk_lock` serializes buffered transfers, which
    issue several commands in sequence.

    **Read loop**: a single task feeds socket bytes through the envelope
    framer into the reply router. Remote close or a socket error fails every
    waiter immediately and schedules disconnect() in a separate task.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        password: int = 0,
        timeout_config: TimeoutConfig | None = None,
        connection: Connection | None = None,
    ) -> None:
        """Initialize session.

        Args:
            host: Terminal address
            port: Terminal TCP port
            password: Numeric comm key configured on the terminal
            timeout_config: Timeout configuration (defaults to TimeoutConfig())
            connection: Byte stream to use (defaults to a TCPConnection to host:port)

        """
        self.timeouts: TimeoutConfig = timeout_config or TimeoutConfig()
        self.conn: Connection = connection or TCPConnection(
            host,
            port,
            connect_timeout=self.timeouts.connect_timeout_seconds,
            io_timeout=self.timeouts.write_timeout_seconds,
        )
        self.host: str = host
        self.port: int = port
        self.password: int = password

        self.state: SessionState = SessionState.DISCONNECTED
        self.session_id: int = 0
        self.reply_id: int = 0
        self.user_packet_size: int = UserLayout.LEGACY
        self.capacity: DeviceCapacity = DeviceCapacity()

        self.framer: EnvelopeFramer = EnvelopeFramer()
        self.router: ReplyRouter = ReplyRouter()
        self.bulk_lock: asyncio.Lock = asyncio.Lock()
        self._command_lock: asyncio.Lock = asyncio.Lock()
        self._read_task: asyncio.Task[None] | None = None
        self._disconnect_task: asyncio.Task[None] | None = None

    @property
    def device_label(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_connected(self) -> bool:
        return self.state is SessionState.CONNECTED

    def _set_state(self, state: SessionState) -> None:
        if state is not self.state:
            logger.debug(
                "Session state %s -> %s",
                self.state.value,
                state.value,
                extra={"device": self.device_label},
            )
        self.state = state
        registry.record_connection_state(self.device_label, state.value)

    async def connect(self) -> None:
        """Open the socket and run the CONNECT (and AUTH) handshake.

        No-op when already connected. Any failure tears the socket down and
        leaves the session DISCONNECTED.

        Raises:
            NetworkError: Socket could not be opened or a handshake reply timed out
            AuthenticationError: Device rejected the comm key
            ProtocolResponseError: Unexpected reply to CMD_CONNECT

        """
        if self.is_connected:
            return

        self._set_state(SessionState.CONNECTING)
        self.framer.reset()
        try:
            await self.conn.connect()
        except ZKError:
            self._set_state(SessionState.DISCONNECTED)
            registry.record_handshake(self.device_label, "network_error")
            raise

        self._read_task = asyncio.create_task(self._read_loop(), name=f"zk-read-{self.device_label}")

        # First command carries USHRT_MAX, the counter wraps immediately after
        self.reply_id = USHRT_MAX - 1
        self.session_id = 0
        try:
            await self._handshake()
        except (ZKError, asyncio.CancelledError) as e:
            logger.error(
                "Handshake with %s failed: %s",
                self.device_label,
                e,
                extra={"device": self.device_label, "error_type": type(e).__name__},
            )
            registry.record_handshake(self.device_label, _handshake_outcome(e))
            await self._teardown()
            raise

        self.user_packet_size = UserLayout.CURRENT
        self._set_state(SessionState.CONNECTED)
        logger.info(
            "Session established with %s",
            self.device_label,
            extra={"device": self.device_label, "session_id": self.session_id},
        )

    async def _handshake(self) -> None:
        response = await self.send_command(CMD_CONNECT, bypass_check=True)
        header = parse_header(response)
        self.session_id = header.session_id

        if header.command == CMD_ACK_UNAUTH:
            self._set_state(SessionState.UNAUTHENTICATED)
            await self._authenticate()
            registry.record_handshake(self.device_label, "auth_ok")
        elif header.command == CMD_ACK_OK:
            registry.record_handshake(self.device_label, "ok")
        else:
            msg = "unexpected response to connect command"
            raise ProtocolResponseError(msg, header.command)

    async def _authenticate(self) -> None:
        key = make_command_key(self.password, self.session_id)
        response = await self.send_command(CMD_AUTH, key, bypass_check=True)
        response_code = parse_header(response).command
        if response_code != CMD_ACK_OK:
            raise AuthenticationError(response_code)

    async def disconnect(self) -> None:
        """Send CMD_EXIT (best effort) and close the socket.

        Idempotent: a no-op unless connected. The state flips to DISCONNECTED
        before EXIT is sent so concurrent failure callbacks do not re-enter.
        """
        if not self.is_connected:
            return

        self._set_state(SessionState.DISCONNECTED)
        try:
            await self.send_command(CMD_EXIT, bypass_check=True)
        except ZKError as e:
            logger.warning(
                "Error sending EXIT during disconnect: %s",
                e,
                extra={"device": self.device_label, "error_type": type(e).__name__},
            )
        finally:
            await self._teardown()
        logger.info("Disconnected from %s", self.device_label, extra={"device": self.device_label})

    async def close(self) -> None:
        """Close the socket without sending EXIT (device is restarting or off)."""
        self._set_state(SessionState.DISCONNECTED)
        await self._teardown()

    async def _teardown(self) -> None:
        """Stop the read loop, close the socket and clear all pending state."""
        self._set_state(SessionState.DISCONNECTED)

        read_task, self._read_task = self._read_task, None
        if read_task is not None and not read_task.done() and read_task is not asyncio.current_task():
            _ = read_task.cancel()
            try:
                await read_task
            except asyncio.CancelledError:
                pass

        try:
            await self.conn.close()
        finally:
            self.router.fail_all(NetworkError("session closed"))
            self.framer.reset()

    async def send_command(
        self,
        command: int,
        body: bytes = b"",
        *,
        bypass_check: bool = False,
        timeout: float | None = None,
    ) -> bytes:
        """Send one command and wait for its reply.

        Args:
            command: Command code
            body: Command payload
            bypass_check: Skip the connected check (CONNECT / AUTH / EXIT only)
            timeout: Reply timeout override in seconds

        Returns:
            Raw reply packet (8-byte header + body)

        Raises:
            ConnectionStateError: Not connected (and not bypassed) or no socket
            NetworkError: Write failed or connection lost while waiting
            CommandTimeoutError: No reply within the timeout

        """
        if not bypass_check and not self.is_connected:
            msg = f"not connected (command {command_name(command)})"
            raise ConnectionStateError(msg, self.state.value)

        wait_seconds = timeout if timeout is not None else self.timeouts.command_timeout_seconds
        name = command_name(command)

        async with self._command_lock:
            with correlation_context(get_correlation_id()) as correlation_id:
                self.reply_id = (self.reply_id + 1) % _REPLY_ID_MODULUS
                reply_id = self.reply_id
                packet = build_command_packet(command, self.session_id, reply_id, body)
                pending = self.router.register(reply_id, command, correlation_id)

                try:
                    if not self.conn.is_connected:
                        raise ConnectionStateError("socket is not available", self.state.value)
                    await self.conn.send(EnvelopeFramer.encode(packet))
                except ZKError:
                    self.router.discard(reply_id)
                    registry.record_command_sent(name, "send_failed")
                    raise

                logger.debug(
                    "Sent %s (reply id %d, %d byte body)",
                    name,
                    reply_id,
                    len(body),
                    extra={"command": command, "reply_id": reply_id, "session_id": self.session_id},
                )

                try:
                    response = await asyncio.wait_for(pending.future, timeout=wait_seconds)
                except TimeoutError as e:
                    registry.record_command_timeout(name)
                    registry.record_command_sent(name, "timeout")
                    logger.warning(
                        "%s timed out after %.1fs",
                        name,
                        wait_seconds,
                        extra={"command": command, "reply_id": reply_id},
                    )
                    raise CommandTimeoutError(command, wait_seconds) from e
                except ZKError:
                    registry.record_command_sent(name, "error")
                    raise
                except asyncio.CancelledError:
                    registry.record_command_sent(name, "cancelled")
                    raise
                finally:
                    # A reply that never came must not be left for the oldest-waiter fallback
                    self.router.discard(reply_id)

                registry.record_command_sent(name, "ok")
                return response

    async def read_sizes(self) -> DeviceCapacity:
        """Refresh the capacity snapshot with CMD_GET_FREE_SIZES.

        Raises:
            ProtocolResponseError: Device answered with a non-OK code

        """
        response = await self.send_command(CMD_GET_FREE_SIZES)
        response_code = parse_header(response).command
        if response_code != CMD_ACK_OK:
            msg = "read sizes failed"
            raise ProtocolResponseError(msg, response_code)
        self.capacity = parse_capacity(response_body(response))
        logger.debug("Capacity refreshed", extra=self.capacity.as_dict())
        return self.capacity

    async def _read_loop(self) -> None:
        """Feed socket bytes to the framer and route complete envelopes.

        **Exit Handling**:
        - asyncio.CancelledError: Clean shutdown from _teardown (re-raised)
        - Remote close / socket error: fail waiters, schedule disconnect
        """
        # The task runs in a copy of the connecting context; keep its id or give the loop its own
        _ = ensure_correlation_id()
        reason = "remote_closed"
        try:
            while True:
                data = await self.conn.recv()
                if not data:
                    break
                for envelope in self.framer.feed(data):
                    self._route_envelope(envelope)
        except asyncio.CancelledError:
            logger.debug("Read loop cancelled (clean shutdown)")
            raise
        except ZKError as e:
            reason = f"socket_error: {e}"

        self._handle_connection_lost(reason)

    def _route_envelope(self, envelope: Envelope) -> None:
        try:
            outcome = self.router.dispatch(envelope.payload)
        except PacketDecodeError as e:
            logger.warning(
                "Dropping undecodable envelope: %s",
                e,
                extra={"data_preview": e.data_preview.hex(), "payload_length": envelope.payload_length},
            )
            registry.record_envelope_decode_error("malformed_header")
            return
        logger.debug(
            "Routed %d byte envelope (%s)",
            envelope.payload_length,
            outcome,
            extra={"outcome": outcome},
        )

    def _handle_connection_lost(self, reason: str) -> None:
        logger.warning(
            "Connection to %s lost (%s)",
            self.device_label,
            reason,
            extra={"device": self.device_label, "reason": reason, "state": self.state.value},
        )
        self.router.fail_all(NetworkError(f"connection lost: {reason}"))
        if self.is_connected and (self._disconnect_task is None or self._disconnect_task.done()):
            self._disconnect_task = asyncio.create_task(self.disconnect(), name=f"zk-disconnect-{self.device_label}")

    def __repr__(self) -> str:
        return f"Session({self.device_label}, {self.state.value}, session_id={self.session_id})"


def _handshake_outcome(error: BaseException) -> str:
    if isinstance(error, AuthenticationError):
        return "auth_failed"
    if isinstance(error, ProtocolResponseError):
        return "rejected"
    if isinstance(error, NetworkError):
        return "network_error"
    return "cancelled"
