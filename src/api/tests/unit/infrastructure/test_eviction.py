"""Unit tests for cache entries and the LRU eviction policy."""

from datetime import UTC, datetime, timedelta

from infrastructure.database.cache import ConnectionCacheEntry
from infrastructure.database.eviction import LeastRecentlyUsedEvictionPolicy

T0 = datetime(2026, 1, 1, tzinfo=UTC)


def entry(minutes: int, active: int = 0) -> ConnectionCacheEntry:
    return ConnectionCacheEntry(
        handle=object(),
        last_accessed=T0 + timedelta(minutes=minutes),
        active_requests=active,
    )


class TestConnectionCacheEntry:
    """Tests for ConnectionCacheEntry."""

    def test_acquire_counts_and_touches(self):
        e = entry(0)
        later = T0 + timedelta(hours=1)

        e.acquire(later)

        assert e.active_requests == 1
        assert e.last_accessed == later
        assert e.is_idle is False

    def test_release_floors_at_zero(self):
        e = entry(0, active=1)

        e.release()
        e.release()

        assert e.active_requests == 0
        assert e.is_idle is True


class TestLeastRecentlyUsedEvictionPolicy:
    """Tests for victim selection."""

    def test_picks_oldest_idle_entry(self):
        policy = LeastRecentlyUsedEvictionPolicy()
        entries = {"A": entry(1), "B": entry(2), "C": entry(3)}

        assert policy.select_victim(entries) == "A"

    def test_ignores_busy_entries_when_idle_exist(self):
        """An older busy entry loses to a newer idle one."""
        policy = LeastRecentlyUsedEvictionPolicy()
        entries = {"A": entry(1, active=2), "B": entry(5), "C": entry(3)}

        assert policy.select_victim(entries) == "C"

    def test_exceed_capacity_returns_none_when_all_busy(self):
        policy = LeastRecentlyUsedEvictionPolicy("exceed_capacity")
        entries = {"A": entry(1, active=1), "B": entry(2, active=1)}

        assert policy.select_victim(entries) is None

    def test_evict_oldest_returns_oldest_busy_entry(self):
        policy = LeastRecentlyUsedEvictionPolicy("evict_oldest")
        entries = {"A": entry(4, active=1), "B": entry(2, active=3)}

        assert policy.select_victim(entries) == "B"

    def test_empty_cache_has_no_victim(self):
        assert LeastRecentlyUsedEvictionPolicy("evict_oldest").select_victim({}) is None

    def test_default_fallback_is_exceed_capacity(self):
        assert LeastRecentlyUsedEvictionPolicy().fallback == "exceed_capacity"
