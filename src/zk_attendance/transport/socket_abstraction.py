"""Asyncio TCP socket abstraction with deadlines and instrumentation."""

from __future__ import annotations

import asyncio
import time

from zk_attendance.logging_abstraction import get_logger
from zk_attendance.transport.exceptions import ConnectionStateError, NetworkError

logger = get_logger(__name__)


class TCPConnection:
    """Async TCP connection with connect and write timeouts.

    Reads have no deadline: the session read loop waits for device traffic
    indefinitely and per-command timeouts live in the session.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 10.0,
        io_timeout: float = 10.0,
        max_read_size: int = 65536,
    ) -> None:
        """
        Initialize TCP connection parameters.

        Args:
            host: Terminal address
            port: Terminal TCP port
            connect_timeout: Connection timeout in seconds
            io_timeout: Write (drain) timeout in seconds
            max_read_size: Maximum bytes to read in one operation
        """
        self.host: str = host
        self.port: int = port
        self.connect_timeout: float = connect_timeout
        self.io_timeout: float = io_timeout
        self.max_read_size: int = max_read_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._connected: bool = False

    async def connect(self) -> None:
        """
        Establish TCP connection with timeout.

        Raises:
            NetworkError: Connection refused, unreachable or timed out
        """
        start_time = time.perf_counter()
        logger.info(
            "Connecting to %s:%d (timeout: %.1fs)",
            self.host,
            self.port,
            self.connect_timeout,
            extra={"host": self.host, "port": self.port, "timeout": self.connect_timeout},
        )
        try:
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self.connect_timeout,
            )
        except TimeoutError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Connection to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": "timeout"},
            )
            msg = f"connect to {self.host}:{self.port} timed out after {self.connect_timeout}s"
            raise NetworkError(msg) from e
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Connection to %s:%d failed after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
                extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms, "error": str(e)},
            )
            msg = f"connect to {self.host}:{self.port} failed: {e}"
            raise NetworkError(msg) from e

        self._connected = True
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Connected to %s:%d in %.1fms",
            self.host,
            self.port,
            elapsed_ms,
            extra={"host": self.host, "port": self.port, "elapsed_ms": elapsed_ms},
        )

    async def send(self, data: bytes) -> None:
        """
        Write data and wait for the transport buffer to drain.

        Raises:
            ConnectionStateError: No open socket
            NetworkError: Write failed or drain timed out
        """
        if not self._connected or self.writer is None:
            raise ConnectionStateError("socket is not available", "disconnected")

        start_time = time.perf_counter()
        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.io_timeout)
        except TimeoutError as e:
            msg = f"send to {self.host}:{self.port} timed out after {self.io_timeout}s"
            raise NetworkError(msg) from e
        except OSError as e:
            msg = f"send to {self.host}:{self.port} failed: {e}"
            raise NetworkError(msg) from e

        logger.debug(
            "Sent %d bytes to %s:%d in %.1fms",
            len(data),
            self.host,
            self.port,
            (time.perf_counter() - start_time) * 1000,
            extra={"bytes": len(data)},
        )

    async def recv(self) -> bytes:
        """
        Receive the next chunk of bytes.

        Returns:
            Received bytes; b"" when the peer closed the connection

        Raises:
            ConnectionStateError: No open socket
            NetworkError: Socket error while reading
        """
        if not self._connected or self.reader is None:
            raise ConnectionStateError("socket is not available", "disconnected")

        try:
            data = await self.reader.read(self.max_read_size)
        except OSError as e:
            msg = f"receive from {self.host}:{self.port} failed: {e}"
            raise NetworkError(msg) from e

        if not data:
            logger.warning(
                "Connection closed by %s:%d",
                self.host,
                self.port,
                extra={"host": self.host, "port": self.port},
            )
            self._connected = False
        return data

    async def close(self) -> None:
        """Close the connection (best effort)."""
        if self.writer is None:
            self._connected = False
            return

        logger.info(
            "Closing connection to %s:%d",
            self.host,
            self.port,
            extra={"host": self.host, "port": self.port},
        )
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError as e:
            logger.warning(
                "Error closing connection: %s",
                e,
                extra={"host": self.host, "port": self.port, "error_type": type(e).__name__},
            )
        finally:
            self._connected = False
            self.writer = None
            self.reader = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def __repr__(self) -> str:
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.host}:{self.port}, {status})"
