"""Tenant connection manager.

Owns the long-lived main database engine and a bounded cache of per-tenant
engines. Tenant engines are created lazily on first use, shared by every
request for that tenant, reference counted while requests use them, and
evicted least-recently-used first when the cache is full.

All cache mutation happens between awaits on a single event loop, so the
bookkeeping itself needs no locks. Creation is the exception: it awaits the
network, so concurrent misses for the same tenant are coalesced onto one
in-flight creation task.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from infrastructure.database.cache import ConnectionCacheEntry
from infrastructure.database.eviction import (
    EvictionPolicy,
    LeastRecentlyUsedEvictionPolicy,
)
from infrastructure.database.exceptions import (
    DatabaseConnectionError,
    InvalidTenantIdError,
)
from infrastructure.database.stats import (
    ConnectionStats,
    ConnectionStatsSnapshot,
    TenantConnectionStats,
)
from infrastructure.observability.tenant_connection_probe import (
    DefaultTenantConnectionProbe,
    TenantConnectionProbe,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from infrastructure.database.connection import ConnectionFactory
    from infrastructure.settings import DatabaseSettings


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _retrieve_exception(task: asyncio.Task) -> None:
    # Every waiter may have been cancelled before a failing open finished
    if not task.cancelled():
        task.exception()


@dataclass
class _PendingCreation:
    """A tenant connection being opened, and how many callers wait on it."""

    task: asyncio.Task[ConnectionCacheEntry] | None = None
    waiters: int = 0


class TenantConnectionManager:
    """Process-wide cache of tenant database engines.

    Build one instance at application start and pass it to whatever needs
    tenant connections. Every successful ``acquire`` must be paired with a
    ``release`` once the caller is done; ``connection()`` does this for you.

    Example:
        manager = TenantConnectionManager(ConnectionFactory(settings), settings)
        async with manager.connection("acme") as engine:
            async with engine.connect() as conn:
                ...
        await manager.close_all()
    """

    def __init__(
        self,
        factory: ConnectionFactory,
        settings: DatabaseSettings,
        eviction_policy: EvictionPolicy | None = None,
        probe: TenantConnectionProbe | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize the manager.

        Args:
            factory: Opens and closes database engines
            settings: Database settings; values are read once here
            eviction_policy: Picks the tenant to reclaim when the cache is full.
                Defaults to idle-first LRU using ``settings.eviction_fallback``.
            probe: Optional observability probe
            clock: Source of access timestamps (defaults to UTC now)
        """
        self._factory = factory
        self._max_connections = settings.max_tenant_connections
        self._database_name = settings.tenant_database_name
        self._eviction_policy = eviction_policy or LeastRecentlyUsedEvictionPolicy(
            settings.eviction_fallback
        )
        self._probe = probe or DefaultTenantConnectionProbe()
        self._clock = clock or _utc_now

        self._main_connection: AsyncEngine | None = None
        self._cache: dict[str, ConnectionCacheEntry] = {}
        self._pending: dict[str, _PendingCreation] = {}
        self._stats = ConnectionStats()
        self._closing = False

    @property
    def max_connections(self) -> int:
        return self._max_connections

    def get_main_connection(self) -> AsyncEngine:
        """Return the main database engine, creating it on first use.

        Raises:
            DatabaseConnectionError: If ``close_all`` is in progress.
        """
        if self._closing:
            raise DatabaseConnectionError("Database connections are shutting down")
        if self._main_connection is None:
            self._main_connection = self._factory.create_main_connection()
        return self._main_connection

    async def acquire(self, tenant_id: str) -> AsyncEngine:
        """Get the engine for *tenant_id*, opening one if none is cached.

        Raises:
            InvalidTenantIdError: If tenant_id is missing or blank.
            DatabaseConnectionError: If a new connection cannot be opened,
                or ``close_all`` is in progress.
        """
        if not isinstance(tenant_id, str) or not tenant_id.strip():
            raise InvalidTenantIdError("Tenant ID is required")
        if self._closing:
            raise DatabaseConnectionError(
                "Database connections are shutting down",
                database=self._database_name(tenant_id),
            )

        self._stats.record_request()

        entry = self._cache.get(tenant_id)
        if entry is not None:
            entry.acquire(self._clock())
            self._stats.record_hit()
            self._probe.tenant_cache_hit(tenant_id, entry.active_requests)
            return entry.handle

        self._stats.record_miss()
        self._probe.tenant_cache_miss(tenant_id)

        pending = self._pending.get(tenant_id)
        if pending is None:
            pending = _PendingCreation()
            pending.task = asyncio.create_task(self._create(tenant_id, pending))
            pending.task.add_done_callback(_retrieve_exception)
            self._pending[tenant_id] = pending
        else:
            self._probe.tenant_creation_joined(tenant_id)
        pending.waiters += 1

        task = pending.task
        try:
            entry = await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.done() and not task.cancelled() and task.exception() is None:
                # The entry already counted this caller
                self.release(tenant_id)
            else:
                pending.waiters -= 1
            raise
        return entry.handle

    def release(self, tenant_id: str) -> None:
        """Mark one request for *tenant_id* as finished. Never raises."""
        if not isinstance(tenant_id, str):
            return
        entry = self._cache.get(tenant_id)
        if entry is None:
            return
        entry.release()
        self._probe.tenant_connection_released(tenant_id, entry.active_requests)

    @asynccontextmanager
    async def connection(self, tenant_id: str) -> AsyncIterator[AsyncEngine]:
        """Acquire the tenant engine for the duration of the block."""
        handle = await self.acquire(tenant_id)
        try:
            yield handle
        finally:
            self.release(tenant_id)

    async def close_tenant(self, tenant_id: str) -> None:
        """Close and forget the tenant's engine, even if requests still use it.

        Closing a tenant that is not cached is a no-op.
        """
        if not isinstance(tenant_id, str):
            return
        entry = self._cache.pop(tenant_id, None)
        if entry is None:
            return
        await self._close_entry(tenant_id, entry)

    async def close_all(self) -> None:
        """Close the main engine and every tenant engine, then reset all state.

        Closes run concurrently; a failure closing one engine is reported
        and does not stop the others. Acquisitions made while this runs
        fail with ``DatabaseConnectionError``.
        """
        self._closing = True
        try:
            tasks = [p.task for p in self._pending.values() if p.task is not None]
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

            main, self._main_connection = self._main_connection, None
            entries = list(self._cache.items())
            self._cache.clear()

            closes = [self._close_entry(tid, entry) for tid, entry in entries]
            if main is not None:
                closes.append(self._close_main(main))
            results = await asyncio.gather(*closes)

            self._stats.reset()
        finally:
            self._closing = False

        closed = sum(results)
        self._probe.all_connections_closed(closed=closed, failed=len(results) - closed)

    def get_stats(self) -> ConnectionStatsSnapshot:
        """Snapshot of counters and every cached tenant connection."""
        tenants = [
            TenantConnectionStats(
                tenant_id=tenant_id,
                last_accessed=entry.last_accessed,
                active_requests=entry.active_requests,
                is_idle=entry.is_idle,
            )
            for tenant_id, entry in self._cache.items()
        ]
        return ConnectionStatsSnapshot(
            total_requests=self._stats.total_requests,
            cache_hits=self._stats.cache_hits,
            cache_misses=self._stats.cache_misses,
            total_tenant_connections=self._stats.total_tenant_connections,
            active_connections=len(self._cache),
            total_active_requests=sum(t.active_requests for t in tenants),
            cache_hit_ratio=self._stats.cache_hit_ratio,
            max_tenant_connections=self._max_connections,
            main_connection_open=self._main_connection is not None,
            tenants=tenants,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create(
        self, tenant_id: str, pending: _PendingCreation
    ) -> ConnectionCacheEntry:
        try:
            await self._reclaim(tenant_id, report_overflow=False)

            database = self._database_name(tenant_id)
            try:
                handle = await self._factory.open(database)
            except DatabaseConnectionError as e:
                self._probe.tenant_connection_failed(tenant_id, e)
                raise

            # Other tenants may have been admitted while this one was opening
            await self._reclaim(tenant_id, report_overflow=True)

            entry = ConnectionCacheEntry(
                handle=handle,
                last_accessed=self._clock(),
                active_requests=pending.waiters,
            )
            self._cache[tenant_id] = entry
            self._stats.record_created()
            self._probe.tenant_connection_created(
                tenant_id=tenant_id,
                database=database,
                cache_size=len(self._cache),
            )
            return entry
        finally:
            if self._pending.get(tenant_id) is pending:
                del self._pending[tenant_id]

    async def _reclaim(self, incoming_tenant_id: str, report_overflow: bool) -> None:
        """Evict until there is room for one more entry or no victim is left."""
        while len(self._cache) >= self._max_connections:
            victim = self._eviction_policy.select_victim(self._cache)
            if victim is None:
                if report_overflow:
                    self._probe.tenant_capacity_exceeded(
                        tenant_id=incoming_tenant_id,
                        cache_size=len(self._cache),
                        limit=self._max_connections,
                    )
                return

            entry = self._cache.pop(victim)
            self._probe.tenant_connection_evicted(
                tenant_id=victim,
                active_requests=entry.active_requests,
                cache_size=len(self._cache),
            )
            await self._close_entry(victim, entry)

    async def _close_entry(self, tenant_id: str, entry: ConnectionCacheEntry) -> bool:
        try:
            await self._factory.close(entry.handle)
        except Exception as e:
            self._probe.tenant_connection_close_failed(tenant_id, e)
            return False
        self._probe.tenant_connection_closed(tenant_id)
        return True

    async def _close_main(self, engine: AsyncEngine) -> bool:
        try:
            await self._factory.close(engine)
        except Exception:
            # Already reported by the factory probe
            return False
        return True
