"""Pytest configuration and shared fixtures."""

import asyncio

import pytest

from taskfire.connection import Connection
from taskfire.errors import TaskfireError
from taskfire.transport import MemoryTransport
from taskfire.work import QueueWorkSink


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def settle():
    """Let scheduled tasks run until they block again."""
    return _settle


@pytest.fixture
def transport() -> MemoryTransport:
    """In-memory transport driven by the test."""
    return MemoryTransport()


@pytest.fixture
def sink() -> QueueWorkSink:
    return QueueWorkSink()


@pytest.fixture
def errors() -> list[TaskfireError]:
    """Collects connection-level errors."""
    return []


@pytest.fixture
def connection(
    transport: MemoryTransport, sink: QueueWorkSink, errors: list[TaskfireError]
) -> Connection:
    """Connection over the memory transport, not yet connected."""
    conn = Connection(transport, sink)
    conn.add_error_listener(errors.append)
    return conn
