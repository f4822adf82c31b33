"""Short-lived in-process cache for rendered schedules.

Only a read optimisation: a stale entry can show a slot as free, and the
booking ledger still rejects the reservation with SlotConflict.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

CacheKey = tuple[str, date, int]


@dataclass
class CacheEntry:
    """Cached value with its store time."""

    value: Any
    stored_at: float = field(default_factory=time.monotonic)


class ScheduleCache:
    """TTL cache keyed by (department_id, start_date, days).

    For single-worker deployments; each worker keeps its own copy.
    """

    def __init__(
        self,
        ttl_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._storage: dict[CacheKey, CacheEntry] = {}

    def get(self, department_id: str, start_date: date, days: int) -> Any | None:
        """Return the cached schedule, or None if missing or expired."""
        key = (department_id, start_date, days)
        entry = self._storage.get(key)
        if entry is None:
            return None

        if self.clock() - entry.stored_at > self.ttl_seconds:
            del self._storage[key]
            return None

        return entry.value

    def set(self, department_id: str, start_date: date, days: int, value: Any) -> None:
        self._storage[(department_id, start_date, days)] = CacheEntry(
            value=value,
            stored_at=self.clock(),
        )

    def invalidate_department(self, department_id: str) -> None:
        """Drop every cached schedule of a department."""
        expired_keys = [key for key in self._storage if key[0] == department_id]
        for key in expired_keys:
            del self._storage[key]

    def clear(self) -> None:
        self._storage.clear()
