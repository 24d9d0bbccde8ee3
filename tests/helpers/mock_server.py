"""Localhost TCP server that answers like an attendance terminal."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from tests.helpers.fake_device import FakeTerminal
from zk_attendance.protocol.constants import CMD_EXIT
from zk_attendance.protocol.packet_framer import EnvelopeFramer
from zk_attendance.protocol.zk_protocol import parse_header

logger = logging.getLogger(__name__)


class ResponseMode(Enum):
    """Response mode for mock terminal server."""

    SUCCESS = "success"  # Answer every command
    TIMEOUT = "timeout"  # Read commands, never answer
    DISCONNECT = "disconnect"  # Accept connection then close immediately


class MockZKServer:
    """Mock terminal listening on localhost, answering through a FakeTerminal."""

    def __init__(
        self,
        terminal: FakeTerminal,
        response_mode: ResponseMode = ResponseMode.SUCCESS,
        host: str = "127.0.0.1",
        port: int = 0,
    ) -> None:
        self.terminal = terminal
        self.response_mode = response_mode
        self.host = host
        self.port = port
        self.server: asyncio.Server | None = None
        self.connection_count = 0
        self.received_commands: list[int] = []
        self._writers: list[asyncio.StreamWriter] = []

    async def start(self) -> None:
        """Start listening; port 0 lets the OS pick one."""
        self.server = await asyncio.start_server(self._handle_client, self.host, self.port)
        if self.port == 0:
            self.port = self.server.sockets[0].getsockname()[1]
        logger.info("Mock terminal started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        await self.drop_clients()
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            logger.info("Mock terminal stopped")

    async def drop_clients(self) -> None:
        """Close every client socket (simulates the terminal going away)."""
        writers, self._writers = self._writers, []
        for writer in writers:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                pass

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connection_count += 1
        if self.response_mode == ResponseMode.DISCONNECT:
            writer.close()
            await writer.wait_closed()
            return

        self._writers.append(writer)
        framer = EnvelopeFramer()
        try:
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                for envelope in framer.feed(data):
                    header = parse_header(envelope.payload)
                    self.received_commands.append(header.command)
                    if self.response_mode == ResponseMode.TIMEOUT:
                        continue
                    for raw in self.terminal.handle(header, envelope.payload[8:]):
                        writer.write(raw)
                    await writer.drain()
                    if header.command == CMD_EXIT:
                        writer.close()
                        return
        except (ConnectionError, OSError) as e:
            logger.info("Client connection ended: %s", e)
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
