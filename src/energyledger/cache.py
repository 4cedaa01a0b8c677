"""In-memory TTL cache for analysis results."""

import threading
import time
from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

log = structlog.get_logger()

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Thread-safe key/value cache whose entries expire after a fixed TTL.

    Expired entries are evicted on read and on every write. Once ``maxsize``
    live entries are held, each new key evicts the oldest stored entry.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        maxsize: int = 128,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.ttl_seconds = ttl_seconds
        self.maxsize = maxsize
        self._clock = clock
        self._lock = threading.Lock()
        # insertion order is age order; set() re-inserts refreshed keys at the end
        self._entries: dict[str, tuple[float, V]] = {}

    def get(self, key: str) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                log.debug("cache_expired", key=key)
                return None
            return value

    def set(self, key: str, value: V) -> None:
        with self._lock:
            now = self._clock()
            self._drop_expired(now)
            self._entries.pop(key, None)
            while len(self._entries) >= self.maxsize:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
                log.debug("cache_evicted", key=oldest)
            self._entries[key] = (now, value)

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            removed = self._drop_expired(self._clock())
        if removed:
            log.debug("cache_purged", removed=removed)
        return removed

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, (at, _) in self._entries.items() if now - at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None
