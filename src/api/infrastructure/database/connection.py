"""Database connection management for the main and tenant databases.

This module provides the connection factory used by the tenant connection
manager: it opens engines, verifies they can reach their database within the
configured budget, and disposes of them.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from infrastructure.database.engines import create_main_engine, create_tenant_engine
from infrastructure.database.exceptions import (
    ConnectionCloseError,
    DatabaseConnectionError,
)
from infrastructure.observability.probes import (
    ConnectionProbe,
    DefaultConnectionProbe,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from infrastructure.settings import DatabaseSettings


class ConnectionFactory:
    """Factory for opening and closing PostgreSQL engines.

    Each engine owns its own connection pool; the factory only decides how
    engines are built and when they count as ready.
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        probe: ConnectionProbe | None = None,
    ):
        """Initialize the connection factory.

        Args:
            settings: Database connection settings
            probe: Optional observability probe
        """
        self._settings = settings
        self._probe = probe or DefaultConnectionProbe()

    def create_main_connection(self) -> AsyncEngine:
        """Create the engine for the main database.

        Engines connect lazily, so no I/O happens here; the first query
        opens the first pooled connection.
        """
        engine = create_main_engine(self._settings)
        self._probe.main_connection_created(
            host=self._settings.host,
            database=self._settings.database,
            pool_size=self._settings.main_pool_size,
        )
        return engine

    async def open(self, database: str) -> AsyncEngine:
        """Open an engine for *database* and wait until it is usable.

        Readiness is a ``SELECT 1`` round trip bounded by the server
        selection timeout.

        Returns:
            A ready async engine for the database.

        Raises:
            DatabaseConnectionError: If the database cannot be reached in time.
        """
        engine = create_tenant_engine(self._settings, database)
        try:
            async with asyncio.timeout(self._settings.server_selection_timeout):
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            await self._dispose_quietly(engine, database)
            self._probe.connection_failed(
                host=self._settings.host,
                database=database,
                error=e,
            )
            raise DatabaseConnectionError(
                f"Database connection failed: {database}", database=database
            ) from e
        except asyncio.CancelledError:
            await self._dispose_quietly(engine, database)
            raise

        self._probe.connection_established(
            host=self._settings.host,
            database=database,
        )
        return engine

    async def close(self, engine: AsyncEngine) -> None:
        """Dispose of *engine* and every pooled connection it holds.

        Raises:
            ConnectionCloseError: If disposing the engine fails.
        """
        database = engine.url.database or ""
        try:
            await engine.dispose()
        except Exception as e:
            self._probe.connection_close_failed(database=database, error=e)
            raise ConnectionCloseError(
                f"Failed to close database connection: {database}",
                database=database,
            ) from e

        self._probe.connection_closed(database=database)

    async def _dispose_quietly(self, engine: AsyncEngine, database: str) -> None:
        """Dispose of an engine that failed to open, keeping the open error."""
        try:
            await engine.dispose()
        except Exception as e:
            self._probe.connection_close_failed(database=database, error=e)
