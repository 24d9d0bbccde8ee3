"""Fixtures for integration tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator

import pytest

from tests.helpers.fake_device import FakeTerminal
from tests.helpers.mock_server import MockZKServer


@pytest.fixture
def terminal() -> FakeTerminal:
    return FakeTerminal()


@pytest.fixture
async def mock_server(terminal: FakeTerminal) -> AsyncGenerator[MockZKServer]:
    """Mock terminal on an OS-assigned localhost port."""
    server = MockZKServer(terminal)
    await server.start()
    yield server
    await server.stop()
