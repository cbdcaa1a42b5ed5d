"""Unit test fixtures with mocked dependencies."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from infrastructure.database.connection_manager import TenantConnectionManager
from infrastructure.database.exceptions import (
    ConnectionCloseError,
    DatabaseConnectionError,
)
from infrastructure.settings import DatabaseSettings


@dataclass(eq=False)
class FakeHandle:
    """Stand-in for an AsyncEngine."""

    database: str
    closed: bool = False


class FakeConnectionFactory:
    """In-memory ConnectionFactory recording every open and close.

    Set ``open_gate`` to hold every open until the event is set.
    """

    def __init__(self) -> None:
        self.opened: list[str] = []
        self.closed: list[FakeHandle] = []
        self.fail_open: set[str] = set()
        self.fail_close: set[str] = set()
        self.open_gate: asyncio.Event | None = None
        self.main_created = 0

    def create_main_connection(self) -> FakeHandle:
        self.main_created += 1
        return FakeHandle("vehicle_platform")

    async def open(self, database: str) -> FakeHandle:
        self.opened.append(database)
        if self.open_gate is not None:
            await self.open_gate.wait()
        else:
            await asyncio.sleep(0)
        if database in self.fail_open:
            raise DatabaseConnectionError(
                f"Database connection failed: {database}", database=database
            )
        return FakeHandle(database)

    async def close(self, handle: FakeHandle) -> None:
        await asyncio.sleep(0)
        if handle.database in self.fail_close:
            raise ConnectionCloseError(
                f"Failed to close database connection: {handle.database}",
                database=handle.database,
            )
        handle.closed = True
        self.closed.append(handle)


class FakeClock:
    """Clock advancing one second per reading, so access times never tie."""

    def __init__(self) -> None:
        self.now = datetime(2026, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def mock_db_settings():
    """Provide test database settings."""
    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="testdb",
        username="testuser",
        password="testpass",
        max_tenant_connections=2,
    )


@pytest.fixture
def fake_factory():
    return FakeConnectionFactory()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_probe():
    return MagicMock()


@pytest.fixture
def manager(mock_db_settings, fake_factory, fake_clock, mock_probe):
    """TenantConnectionManager with a capacity of two tenants."""
    return TenantConnectionManager(
        fake_factory,
        mock_db_settings,
        probe=mock_probe,
        clock=fake_clock,
    )
