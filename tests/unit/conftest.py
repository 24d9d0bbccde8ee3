"""Shared fixtures for unit tests.

Sessions here run over FakeConnection, so every test exercises the real
framer, router and read loop without opening a socket.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from tests.helpers.fake_device import FakeConnection, FakeTerminal
from zk_attendance.device import ZKDevice
from zk_attendance.transport.session import Session
from zk_attendance.transport.types import TimeoutConfig

FAST_TIMEOUT = 0.2


@pytest.fixture
def terminal() -> FakeTerminal:
    """Terminal with no password and an empty dataset."""
    return FakeTerminal()


@pytest.fixture
def connection(terminal: FakeTerminal) -> FakeConnection:
    return FakeConnection(terminal.handle)


@pytest.fixture
def session(connection: FakeConnection) -> Session:
    """Unconnected session with short timeouts and no chunk delay."""
    return Session(
        connection.host,
        connection.port,
        timeout_config=TimeoutConfig(FAST_TIMEOUT, chunk_delay_ms=0),
        connection=connection,
    )


@pytest.fixture
async def connected_session(session: Session) -> AsyncGenerator[Session]:
    await session.connect()
    yield session
    await session.close()


@pytest.fixture
async def device(connection: FakeConnection) -> AsyncGenerator[ZKDevice]:
    zk = ZKDevice(connection.host, connection.port, timeout=FAST_TIMEOUT, chunk_delay_ms=0, connection=connection)
    await zk.connect()
    yield zk
    await zk.session.close()
