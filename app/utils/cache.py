import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass


@dataclass(frozen=True)
class CacheEntry[V]:
    value: V
    fetched_at: float
    """time.monotonic() when the value was stored"""


class TTLCache[K: Hashable, V]:
    """Thread-safe cache whose entries go stale after ``ttl`` seconds.

    Stale entries are kept until replaced or invalidated so callers can fall
    back to them when a refresh fails.
    """

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[K, CacheEntry[V]] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> CacheEntry[V] | None:
        """Return the entry for ``key`` whether fresh or stale."""
        with self._lock:
            return self._entries.get(key)

    def get_fresh(self, key: K) -> V | None:
        entry = self.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        return entry.value

    def is_fresh(self, entry: CacheEntry[V]) -> bool:
        return self._clock() - entry.fetched_at < self.ttl

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock())

    def invalidate(self, predicate: Callable[[K], bool]) -> int:
        """Drop every entry whose key matches ``predicate``, returning how many went."""
        with self._lock:
            stale_keys = [key for key in self._entries if predicate(key)]
            for key in stale_keys:
                del self._entries[key]
        return len(stale_keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
