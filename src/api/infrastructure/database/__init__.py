"""Database infrastructure - main and per-tenant connection management."""

from infrastructure.database.connection import ConnectionFactory
from infrastructure.database.connection_manager import TenantConnectionManager
from infrastructure.database.exceptions import (
    ConnectionCloseError,
    DatabaseConnectionError,
    DatabaseError,
    InvalidTenantIdError,
)
from infrastructure.database.stats import ConnectionStatsSnapshot

__all__ = [
    "ConnectionCloseError",
    "ConnectionFactory",
    "ConnectionStatsSnapshot",
    "DatabaseConnectionError",
    "DatabaseError",
    "InvalidTenantIdError",
    "TenantConnectionManager",
]
