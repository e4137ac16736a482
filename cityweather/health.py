"""In-memory health registry for the admin endpoint.

Services report provider failures and resolver outcomes here; the snapshot is
what ``GET /api/admin/health`` returns.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Callable, Dict, Mapping, Optional


@dataclass(frozen=True)
class CacheStats:
    """Simple container for cache related counters."""

    hits: int = 0
    misses: int = 0
    keys: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"hits": self.hits, "misses": self.misses, "keys": self.keys}


class HealthRegistry:
    """Stores provider error counters, resolver outcomes and cache stats."""

    def __init__(self) -> None:
        self._provider_errors: Dict[str, int] = {}
        self._provider_last_error: Dict[str, str] = {}
        self._resolver_outcomes: Dict[str, int] = {}
        self._cache_source: Optional[Callable[[], Mapping[str, int]]] = None
        self._lock = Lock()

    # -- Provider errors ----------------------------------------------------
    def record_provider_error(self, provider: str, when: Optional[datetime] = None) -> None:
        if not provider:
            raise ValueError("provider must be provided")
        when = when or datetime.now(timezone.utc)
        with self._lock:
            self._provider_errors[provider] = self._provider_errors.get(provider, 0) + 1
            self._provider_last_error[provider] = self._format_datetime(when)

    def drain_provider_errors(self) -> Dict[str, int]:
        with self._lock:
            snapshot = dict(self._provider_errors)
            self._provider_errors.clear()
            self._provider_last_error.clear()
            return snapshot

    # -- Resolver outcomes --------------------------------------------------
    def record_resolver_outcome(self, outcome: str) -> None:
        with self._lock:
            self._resolver_outcomes[outcome] = self._resolver_outcomes.get(outcome, 0) + 1

    # -- Cache stats --------------------------------------------------------
    def watch_cache(self, source: Callable[[], Mapping[str, int]]) -> None:
        """Register a callable returning ``{"hits", "misses", "keys"}``."""
        self._cache_source = source

    def _cache_stats(self) -> CacheStats:
        if self._cache_source is None:
            return CacheStats()
        stats = self._cache_source() or {}
        return CacheStats(
            hits=int(stats.get("hits", 0)),
            misses=int(stats.get("misses", 0)),
            keys=int(stats.get("keys", 0)),
        )

    # -- Snapshot -----------------------------------------------------------
    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            providers = {
                name: {"errors": count, "last_error_at": self._provider_last_error.get(name)}
                for name, count in self._provider_errors.items()
            }
            resolver = dict(self._resolver_outcomes)
        return {"providers": providers, "resolver": resolver, "cache": self._cache_stats().as_dict()}

    @staticmethod
    def _format_datetime(value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()


__all__ = ["CacheStats", "HealthRegistry"]
