"""Cache entry holding one tenant's pooled database engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class ConnectionCacheEntry:
    """Per-tenant record stored by the tenant connection manager.

    The entry owns its handle exclusively while it sits in the cache.

    Attributes:
        handle: The tenant's engine (opaque to the cache).
        last_accessed: When the handle was last handed out.
        active_requests: Requests currently using the handle. Never negative.
    """

    handle: Any
    last_accessed: datetime
    active_requests: int = 0

    @property
    def is_idle(self) -> bool:
        return self.active_requests == 0

    def acquire(self, now: datetime) -> None:
        """Hand the handle out to one more request."""
        self.last_accessed = now
        self.active_requests += 1

    def release(self) -> None:
        """Mark one request as finished, never going below zero."""
        self.active_requests = max(0, self.active_requests - 1)
