"""Connection statistics for health checks and dashboards."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


def format_hit_ratio(hits: int, total: int) -> str:
    """Percentage of requests served from the cache, e.g. ``"75.00%"``.

    Reports ``"0%"`` when no request has been made yet.
    """
    if total == 0:
        return "0%"
    return f"{hits / total * 100:.2f}%"


@dataclass(frozen=True)
class TenantConnectionStats:
    """Point-in-time view of one cached tenant connection."""

    tenant_id: str
    last_accessed: datetime
    active_requests: int
    is_idle: bool

    def as_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "last_accessed": self.last_accessed.isoformat(),
            "active_requests": self.active_requests,
            "is_idle": self.is_idle,
        }


@dataclass(frozen=True)
class ConnectionStatsSnapshot:
    """Immutable snapshot of the tenant connection manager.

    Attributes:
        total_requests: Acquisitions attempted since start or last shutdown.
        cache_hits: Acquisitions served by an existing connection.
        cache_misses: Acquisitions that found no cached connection.
        total_tenant_connections: Tenant connections ever created.
        active_connections: Tenant connections currently cached.
        total_active_requests: Sum of in-flight requests across tenants.
        cache_hit_ratio: ``cache_hits / total_requests`` as a percentage string.
        max_tenant_connections: Configured cache capacity.
        main_connection_open: Whether the main database engine exists.
        tenants: Per-tenant details.
    """

    total_requests: int
    cache_hits: int
    cache_misses: int
    total_tenant_connections: int
    active_connections: int
    total_active_requests: int
    cache_hit_ratio: str
    max_tenant_connections: int
    main_connection_open: bool
    tenants: list[TenantConnectionStats] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        """Convert the snapshot to a JSON-serializable dictionary."""
        return {
            "total_requests": self.total_requests,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "total_tenant_connections": self.total_tenant_connections,
            "active_connections": self.active_connections,
            "total_active_requests": self.total_active_requests,
            "cache_hit_ratio": self.cache_hit_ratio,
            "max_tenant_connections": self.max_tenant_connections,
            "main_connection_open": self.main_connection_open,
            "tenants": [tenant.as_dict() for tenant in self.tenants],
        }


class ConnectionStats:
    """Mutable request counters owned by the tenant connection manager."""

    def __init__(self) -> None:
        self.total_requests = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.total_tenant_connections = 0

    def record_request(self) -> None:
        self.total_requests += 1

    def record_hit(self) -> None:
        self.cache_hits += 1

    def record_miss(self) -> None:
        self.cache_misses += 1

    def record_created(self) -> None:
        self.total_tenant_connections += 1

    def reset(self) -> None:
        """Zero every counter."""
        self.total_requests = 0
        self.cache_hits = 0
        self.cache_misses = 0
        self.total_tenant_connections = 0

    @property
    def cache_hit_ratio(self) -> str:
        return format_hit_ratio(self.cache_hits, self.total_requests)
