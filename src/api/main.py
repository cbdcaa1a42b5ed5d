"""Main FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI

from infrastructure.database.connection import ConnectionFactory
from infrastructure.database.connection_manager import TenantConnectionManager
from infrastructure.dependencies import get_connection_manager
from infrastructure.logging import configure_logging
from infrastructure.observability import (
    DefaultConnectionProbe,
    DefaultTenantConnectionProbe,
    ObservationContext,
)
from infrastructure.settings import get_database_settings, get_settings
from infrastructure.version import __version__


@asynccontextmanager
async def autoerp_lifespan(app: FastAPI):
    """Application lifespan context.

    Manages:
    - Logging configuration
    - Tenant connection manager creation (one per process)
    - Graceful shutdown of the main and every tenant connection
    """
    app_settings = get_settings()
    configure_logging(debug=app_settings.debug)

    # Every connection event carries the service name
    context = ObservationContext(extra={"service": app_settings.app_name})

    settings = get_database_settings()
    factory = ConnectionFactory(
        settings, probe=DefaultConnectionProbe().with_context(context)
    )
    manager = TenantConnectionManager(
        factory,
        settings,
        probe=DefaultTenantConnectionProbe().with_context(context),
    )
    app.state.connection_manager = manager

    try:
        yield
    finally:
        await manager.close_all()
        app.state.connection_manager = None


app = FastAPI(
    title="AutoERP API",
    description="Dealership and workshop ERP backend",
    version=__version__,
    lifespan=autoerp_lifespan,
)


@app.get("/health")
def health():
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/health/db")
def health_db(
    manager: Annotated[TenantConnectionManager, Depends(get_connection_manager)],
) -> dict:
    """Report connection cache statistics.

    Returns counters, the cache hit ratio and every cached tenant connection.
    """
    return {"status": "ok", **manager.get_stats().as_dict()}
