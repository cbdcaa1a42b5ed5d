"""Database-specific exceptions for tenant connection management."""

from __future__ import annotations


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class InvalidTenantIdError(DatabaseError, ValueError):
    """Raised when a tenant connection is requested without a usable tenant id.

    This is a caller bug and is surfaced immediately, before any counter
    or cache is touched.
    """

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when a database connection cannot be established.

    Covers timeouts, authentication and network failures. Nothing is
    cached when this is raised.
    """

    def __init__(self, message: str, database: str | None = None):
        super().__init__(message)
        self.database = database


class ConnectionCloseError(DatabaseError):
    """Raised when closing a database connection fails."""

    def __init__(self, message: str, database: str | None = None):
        super().__init__(message)
        self.database = database
