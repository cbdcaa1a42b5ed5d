"""Eviction policies for the tenant connection cache."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from infrastructure.database.cache import ConnectionCacheEntry
    from infrastructure.settings import EvictionFallback


class EvictionPolicy(Protocol):
    """Chooses which cached tenant to reclaim when the cache is full."""

    def select_victim(self, entries: Mapping[str, ConnectionCacheEntry]) -> str | None:
        """Return the tenant id to evict, or None to evict nothing."""
        ...


class LeastRecentlyUsedEvictionPolicy:
    """Strict LRU over idle entries, with a configurable fallback.

    Idle entries (no active requests) are always preferred, oldest
    ``last_accessed`` first. When every entry is busy the fallback decides:

    - ``exceed_capacity``: evict nothing; the caller admits the new tenant
      and the cache runs over its limit until entries are closed.
    - ``evict_oldest``: evict the globally oldest entry even though a
      request is still using it.
    """

    def __init__(self, fallback: EvictionFallback = "exceed_capacity"):
        self._fallback = fallback

    @property
    def fallback(self) -> EvictionFallback:
        return self._fallback

    def select_victim(self, entries: Mapping[str, ConnectionCacheEntry]) -> str | None:
        idle = [(e.last_accessed, tid) for tid, e in entries.items() if e.is_idle]
        if idle:
            return min(idle)[1]

        if self._fallback == "evict_oldest" and entries:
            return min(entries, key=lambda tid: entries[tid].last_accessed)

        return None
