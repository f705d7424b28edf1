"""
In-memory TTL cache owned by a single service instance.

Entries carry their own expiry and are replaced wholesale on ``set``. Expired
entries are kept until overwritten so callers can still serve them as a stale
fallback through ``get_stale``.
"""
import time
from collections.abc import Callable, Hashable
from typing import Any

Clock = Callable[[], float]


class TTLCache:
    def __init__(self, clock: Clock | None = None):
        self._clock = clock or time.time
        self._store: dict[Hashable, tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Any | None:
        """Get a value if it exists and hasn't expired."""
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() < expires_at:
            return value
        return None

    def get_stale(self, key: Hashable) -> Any | None:
        """Get a value regardless of its expiry."""
        entry = self._store.get(key)
        return entry[0] if entry is not None else None

    def set(self, key: Hashable, value: Any, ttl_seconds: float) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)

    def clear(self) -> None:
        self._store.clear()

    @property
    def size(self) -> int:
        return len(self._store)
