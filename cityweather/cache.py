from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Tuple

from .entities import WeatherSnapshot, normalize_city_key


class TTLCache:
    """A small TTL cache with the ``get``/``set(key, value, ttl)`` shape of Django's caches.

    Used for memoized geocoder answers; any Django cache backend can be
    swapped in for it.
    """

    def __init__(self, time_func=time.monotonic, max_entries: int = 1024) -> None:
        self._time_func = time_func
        self._max_entries = max_entries
        self._storage: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            item = self._storage.get(key)
            if not item:
                return default
            expires_at, value = item
            if expires_at < self._time_func():
                self._storage.pop(key, None)
                return default
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            self._storage[key] = (self._time_func() + ttl, value)
            self._storage.move_to_end(key)
            while len(self._storage) > self._max_entries:
                self._storage.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()


class SnapshotCache:
    """Holds at most one weather snapshot per city key, evicting least recently used."""

    def __init__(self, capacity: Optional[int] = 256) -> None:
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._storage: "OrderedDict[str, WeatherSnapshot]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, city: str) -> Optional[WeatherSnapshot]:
        key = normalize_city_key(city)
        with self._lock:
            snapshot = self._storage.get(key)
            if snapshot is None:
                self._misses += 1
                return None
            self._hits += 1
            self._storage.move_to_end(key)
            return snapshot

    def put(self, snapshot: WeatherSnapshot) -> List[str]:
        """Store the snapshot and return the keys evicted to make room."""
        key = normalize_city_key(snapshot.city_key)
        evicted: List[str] = []
        with self._lock:
            self._storage[key] = snapshot
            self._storage.move_to_end(key)
            if self._capacity is not None:
                while len(self._storage) > self._capacity:
                    evicted.append(self._storage.popitem(last=False)[0])
        return evicted

    def __contains__(self, city: str) -> bool:
        with self._lock:
            return normalize_city_key(city) in self._storage

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"hits": self._hits, "misses": self._misses, "keys": len(self._storage)}

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()


__all__ = ["SnapshotCache", "TTLCache"]
