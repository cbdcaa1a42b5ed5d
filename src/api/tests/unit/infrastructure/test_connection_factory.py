"""Unit tests for ConnectionFactory."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import SecretStr
from sqlalchemy.exc import OperationalError

from infrastructure.database.connection import ConnectionFactory
from infrastructure.database.exceptions import (
    ConnectionCloseError,
    DatabaseConnectionError,
)
from infrastructure.settings import DatabaseSettings


@pytest.fixture
def mock_db_settings():
    """Create mock database settings."""
    return DatabaseSettings(
        host="localhost",
        port=5432,
        database="test_db",
        username="test_user",
        password=SecretStr("test_pass"),
        server_selection_timeout_ms=200,
    )


@pytest.fixture
def mock_probe():
    return MagicMock()


@pytest.fixture
def mock_engine():
    """Create a mock AsyncEngine whose connect() yields a mock connection."""
    engine = MagicMock()
    engine.url.database = "company_A"
    engine.dispose = AsyncMock()
    conn = AsyncMock()
    engine.connect.return_value.__aenter__.return_value = conn
    engine.connect.return_value.__aexit__.return_value = False
    return engine


class TestCreateMainConnection:
    """Tests for create_main_connection."""

    def test_builds_main_engine_and_reports(self, mock_db_settings, mock_probe):
        with patch(
            "infrastructure.database.connection.create_main_engine"
        ) as mock_create:
            factory = ConnectionFactory(mock_db_settings, probe=mock_probe)
            engine = factory.create_main_connection()

            mock_create.assert_called_once_with(mock_db_settings)
            assert engine is mock_create.return_value
            mock_probe.main_connection_created.assert_called_once_with(
                host="localhost", database="test_db", pool_size=20
            )


class TestOpen:
    """Tests for open()."""

    @pytest.mark.asyncio
    async def test_returns_ready_engine(self, mock_db_settings, mock_probe, mock_engine):
        """Should verify the engine with a round trip before returning it."""
        with patch(
            "infrastructure.database.connection.create_tenant_engine",
            return_value=mock_engine,
        ) as mock_create:
            factory = ConnectionFactory(mock_db_settings, probe=mock_probe)
            engine = await factory.open("company_A")

            assert engine is mock_engine
            mock_create.assert_called_once_with(mock_db_settings, "company_A")
            conn = mock_engine.connect.return_value.__aenter__.return_value
            conn.execute.assert_awaited_once()
            mock_engine.dispose.assert_not_awaited()
            mock_probe.connection_established.assert_called_once_with(
                host="localhost", database="company_A"
            )

    @pytest.mark.asyncio
    async def test_wraps_driver_error(self, mock_db_settings, mock_probe, mock_engine):
        """Driver errors become DatabaseConnectionError and the engine is disposed."""
        conn = mock_engine.connect.return_value.__aenter__.return_value
        conn.execute.side_effect = OperationalError(
            "SELECT 1", {}, Exception("password authentication failed")
        )

        with patch(
            "infrastructure.database.connection.create_tenant_engine",
            return_value=mock_engine,
        ):
            factory = ConnectionFactory(mock_db_settings, probe=mock_probe)

            with pytest.raises(DatabaseConnectionError) as exc_info:
                await factory.open("company_A")

        assert "company_A" in str(exc_info.value)
        assert exc_info.value.database == "company_A"
        mock_engine.dispose.assert_awaited_once()
        mock_probe.connection_failed.assert_called_once()

    @pytest.mark.asyncio
    async def test_dispose_failure_keeps_open_error(
        self, mock_db_settings, mock_probe, mock_engine
    ):
        """A failing dispose after a failed open must not mask the open error."""
        conn = mock_engine.connect.return_value.__aenter__.return_value
        conn.execute.side_effect = OperationalError(
            "SELECT 1", {}, Exception("connection reset")
        )
        mock_engine.dispose.side_effect = RuntimeError("pool already closed")

        with patch(
            "infrastructure.database.connection.create_tenant_engine",
            return_value=mock_engine,
        ):
            factory = ConnectionFactory(mock_db_settings, probe=mock_probe)

            with pytest.raises(DatabaseConnectionError) as exc_info:
                await factory.open("company_A")

        assert isinstance(exc_info.value.__cause__, OperationalError)
        mock_probe.connection_failed.assert_called_once()
        mock_probe.connection_close_failed.assert_called_once()
        assert mock_probe.connection_close_failed.call_args.kwargs["database"] == (
            "company_A"
        )

    @pytest.mark.asyncio
    async def test_wraps_network_error(self, mock_db_settings, mock_probe, mock_engine):
        mock_engine.connect.return_value.__aenter__.side_effect = OSError(
            "Connection refused"
        )

        with patch(
            "infrastructure.database.connection.create_tenant_engine",
            return_value=mock_engine,
        ):
            factory = ConnectionFactory(mock_db_settings, probe=mock_probe)

            with pytest.raises(DatabaseConnectionError):
                await factory.open("company_A")

        mock_engine.dispose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_times_out_slow_server(self, mock_db_settings, mock_probe, mock_engine):
        """A server slower than the selection timeout should fail the open."""

        async def never_answers(*args, **kwargs):
            await asyncio.sleep(10)

        conn = mock_engine.connect.return_value.__aenter__.return_value
        conn.execute.side_effect = never_answers

        with patch(
            "infrastructure.database.connection.create_tenant_engine",
            return_value=mock_engine,
        ):
            factory = ConnectionFactory(mock_db_settings, probe=mock_probe)

            with pytest.raises(DatabaseConnectionError) as exc_info:
                await factory.open("company_A")

        assert isinstance(exc_info.value.__cause__, TimeoutError)
        mock_engine.dispose.assert_awaited_once()


class TestClose:
    """Tests for close()."""

    @pytest.mark.asyncio
    async def test_disposes_engine(self, mock_db_settings, mock_probe, mock_engine):
        factory = ConnectionFactory(mock_db_settings, probe=mock_probe)

        await factory.close(mock_engine)

        mock_engine.dispose.assert_awaited_once()
        mock_probe.connection_closed.assert_called_once_with(database="company_A")

    @pytest.mark.asyncio
    async def test_wraps_dispose_failure(self, mock_db_settings, mock_probe, mock_engine):
        mock_engine.dispose.side_effect = RuntimeError("socket already closed")
        factory = ConnectionFactory(mock_db_settings, probe=mock_probe)

        with pytest.raises(ConnectionCloseError) as exc_info:
            await factory.close(mock_engine)

        assert exc_info.value.database == "company_A"
        mock_probe.connection_close_failed.assert_called_once()
        mock_probe.connection_closed.assert_not_called()
