"""Short-lived in-memory response cache."""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import Lock
from typing import Any

# Cache key for the aggregated local port list served by GET /api/ports
PORTS_CACHE_KEY = "endpoint:ports:local"


class TTLCache:
    """Key/value cache whose entries expire a fixed time after they were set.

    Expiry is checked lazily on ``get``; there is no background sweep. Every
    read and write holds the lock, so a reader never sees a half-replaced entry.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_ms: int) -> None:
        """Store a value that expires ``ttl_ms`` milliseconds from now."""
        expires_at = self._clock() + ttl_ms / 1000.0
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if an entry was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def invalidate_ports_cache(cache: TTLCache | None) -> None:
    """Drop the cached port list after an annotation changed."""
    if cache is not None:
        cache.delete(PORTS_CACHE_KEY)
