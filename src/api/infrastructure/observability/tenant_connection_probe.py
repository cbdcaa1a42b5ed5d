"""Domain probe for the tenant connection cache.

Following Domain-Oriented Observability patterns, this probe captures
cache hits, misses, evictions and shutdown of tenant connections.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from infrastructure.observability.context import ObservationContext


class TenantConnectionProbe(Protocol):
    """Domain probe for tenant connection cache operations."""

    def tenant_cache_hit(self, tenant_id: str, active_requests: int) -> None:
        """Record that a tenant connection was served from the cache."""
        ...

    def tenant_cache_miss(self, tenant_id: str) -> None:
        """Record that no cached connection existed for a tenant."""
        ...

    def tenant_creation_joined(self, tenant_id: str) -> None:
        """Record that a caller joined a connection creation already in flight."""
        ...

    def tenant_connection_created(
        self, tenant_id: str, database: str, cache_size: int
    ) -> None:
        """Record that a new tenant connection was created and cached."""
        ...

    def tenant_connection_failed(self, tenant_id: str, error: Exception) -> None:
        """Record that opening a tenant connection failed."""
        ...

    def tenant_connection_released(self, tenant_id: str, active_requests: int) -> None:
        """Record that a request finished using a tenant connection."""
        ...

    def tenant_connection_evicted(
        self, tenant_id: str, active_requests: int, cache_size: int
    ) -> None:
        """Record that a tenant connection was evicted to make room."""
        ...

    def tenant_capacity_exceeded(self, tenant_id: str, cache_size: int, limit: int) -> None:
        """Record that a tenant was admitted past the cache limit."""
        ...

    def tenant_connection_closed(self, tenant_id: str) -> None:
        """Record that a tenant connection was closed and uncached."""
        ...

    def tenant_connection_close_failed(self, tenant_id: str, error: Exception) -> None:
        """Record that closing a tenant connection failed."""
        ...

    def all_connections_closed(self, closed: int, failed: int) -> None:
        """Record the outcome of shutting down every connection."""
        ...

    def with_context(self, context: ObservationContext) -> TenantConnectionProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultTenantConnectionProbe:
    """Default implementation of TenantConnectionProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultTenantConnectionProbe:
        """Create a new probe with observation context bound."""
        return DefaultTenantConnectionProbe(logger=self._logger, context=context)

    def tenant_cache_hit(self, tenant_id: str, active_requests: int) -> None:
        """Record that a tenant connection was served from the cache."""
        self._logger.debug(
            "tenant_connection_cache_hit",
            tenant_id=tenant_id,
            active_requests=active_requests,
            **self._get_context_kwargs(),
        )

    def tenant_cache_miss(self, tenant_id: str) -> None:
        """Record that no cached connection existed for a tenant."""
        self._logger.debug(
            "tenant_connection_cache_miss",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_creation_joined(self, tenant_id: str) -> None:
        """Record that a caller joined a connection creation already in flight."""
        self._logger.debug(
            "tenant_connection_creation_joined",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_connection_created(
        self, tenant_id: str, database: str, cache_size: int
    ) -> None:
        """Record that a new tenant connection was created and cached."""
        self._logger.info(
            "tenant_connection_created",
            tenant_id=tenant_id,
            database=database,
            cache_size=cache_size,
            **self._get_context_kwargs(),
        )

    def tenant_connection_failed(self, tenant_id: str, error: Exception) -> None:
        """Record that opening a tenant connection failed."""
        self._logger.error(
            "tenant_connection_failed",
            tenant_id=tenant_id,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def tenant_connection_released(self, tenant_id: str, active_requests: int) -> None:
        """Record that a request finished using a tenant connection."""
        self._logger.debug(
            "tenant_connection_released",
            tenant_id=tenant_id,
            active_requests=active_requests,
            **self._get_context_kwargs(),
        )

    def tenant_connection_evicted(
        self, tenant_id: str, active_requests: int, cache_size: int
    ) -> None:
        """Record that a tenant connection was evicted to make room."""
        # Evicting a busy connection invalidates a handle still in use
        log = self._logger.warning if active_requests else self._logger.info
        log(
            "tenant_connection_evicted",
            tenant_id=tenant_id,
            active_requests=active_requests,
            cache_size=cache_size,
            **self._get_context_kwargs(),
        )

    def tenant_capacity_exceeded(self, tenant_id: str, cache_size: int, limit: int) -> None:
        """Record that a tenant was admitted past the cache limit."""
        self._logger.warning(
            "tenant_connection_capacity_exceeded",
            tenant_id=tenant_id,
            cache_size=cache_size,
            limit=limit,
            **self._get_context_kwargs(),
        )

    def tenant_connection_closed(self, tenant_id: str) -> None:
        """Record that a tenant connection was closed and uncached."""
        self._logger.info(
            "tenant_connection_closed",
            tenant_id=tenant_id,
            **self._get_context_kwargs(),
        )

    def tenant_connection_close_failed(self, tenant_id: str, error: Exception) -> None:
        """Record that closing a tenant connection failed."""
        self._logger.error(
            "tenant_connection_close_failed",
            tenant_id=tenant_id,
            error=str(error),
            **self._get_context_kwargs(),
        )

    def all_connections_closed(self, closed: int, failed: int) -> None:
        """Record the outcome of shutting down every connection."""
        self._logger.info(
            "all_database_connections_closed",
            closed=closed,
            failed=failed,
            **self._get_context_kwargs(),
        )
