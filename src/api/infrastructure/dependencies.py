"""Shared infrastructure dependencies for FastAPI.

Provides the tenant connection manager and request-scoped tenant
connections. The manager itself is built once by the application lifespan
and stored on ``app.state``.

Usage in FastAPI routes:
    @router.get("/example")
    async def example(
        engine: Annotated[AsyncEngine, Depends(get_tenant_connection)],
    ):
        async with engine.connect() as conn:
            ...
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncEngine

from infrastructure.database.connection_manager import TenantConnectionManager
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    InvalidTenantIdError,
)


def get_connection_manager(request: Request) -> TenantConnectionManager:
    """Get the application-scoped tenant connection manager.

    Raises:
        HTTPException 503: If the application has not started the manager.
    """
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connections are not available",
        )
    return manager


def get_main_connection(
    manager: Annotated[TenantConnectionManager, Depends(get_connection_manager)],
) -> AsyncEngine:
    """Provide the main database engine."""
    return manager.get_main_connection()


async def get_tenant_connection(
    manager: Annotated[TenantConnectionManager, Depends(get_connection_manager)],
    x_tenant_id: Annotated[str | None, Header()] = None,
) -> AsyncGenerator[AsyncEngine, None]:
    """Provide the engine of the tenant named by the X-Tenant-ID header.

    The connection is released when the request completes, whether the
    route succeeded or failed.

    Raises:
        HTTPException 400: If the header is missing or blank.
        HTTPException 503: If the tenant database cannot be reached.
    """
    if x_tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required",
        )

    try:
        engine = await manager.acquire(x_tenant_id)
    except InvalidTenantIdError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e
    except DatabaseConnectionError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Tenant database temporarily unavailable",
        ) from e

    try:
        yield engine
    finally:
        manager.release(x_tenant_id)
