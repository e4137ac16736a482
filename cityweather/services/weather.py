from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from .. import config
from ..cache import SnapshotCache
from ..entities import (
    DailyPoint,
    DayComparison,
    PlaceCandidate,
    ProviderForecast,
    WeatherSnapshot,
    normalize_city_key,
)
from ..health import HealthRegistry
from ..providers.base import ProviderError
from ..storage import DailyHistory, InMemoryDailyHistory
from ..timezones import resolve_timezone


class ForecastProvider(Protocol):
    name: str

    def fetch(self, latitude: float, longitude: float) -> ProviderForecast:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WeatherAggregator:
    """Per-city weather snapshots with synchronous cached reads.

    ``get_cached`` never touches the network. ``refresh`` replaces a city's
    snapshot wholesale; when the provider fails the previous snapshot stays in
    place and is still served. Refreshes of the same city are serialized, and
    a caller that waited behind another refresh of that city reuses its result.
    """

    HOURLY_LIMIT = config.HOURLY_LIMIT
    DAILY_LIMIT = config.DAILY_LIMIT
    HOURLY_EPSILON = timedelta(seconds=config.HOURLY_EPSILON_SECONDS)

    def __init__(
        self,
        provider: ForecastProvider,
        *,
        cache: Optional[SnapshotCache] = None,
        history: Optional[DailyHistory] = None,
        timezone_resolver: Callable[..., tzinfo] = resolve_timezone,
        clock: Callable[[], datetime] = _utcnow,
        executor: Optional[Executor] = None,
        health: Optional[HealthRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else SnapshotCache(config.SNAPSHOT_CAPACITY)
        self.history = history if history is not None else InMemoryDailyHistory()
        self._timezone_resolver = timezone_resolver
        self._clock = clock
        self._executor = executor
        self._health = health
        self._key_locks: Dict[str, threading.Lock] = {}
        self._generations: Dict[str, int] = {}
        self._lock_users: Dict[str, int] = {}
        self._locks_guard = threading.Lock()
        self._log = logger or logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def get_cached(self, city: str) -> Optional[WeatherSnapshot]:
        return self.cache.get(city)

    def refresh(self, city: str, latitude: float, longitude: float) -> WeatherSnapshot:
        key = normalize_city_key(city)
        if not key:
            raise ValueError("city must not be empty")
        lock, generation = self._lock_for(key)
        evicted: List[str] = []
        try:
            with lock:
                current = self.cache.get(key)
                if current is not None and self._generation(key) != generation:
                    self._log.debug("Reusing refresh of %s completed while waiting", key)
                    return current
                try:
                    forecast = self.provider.fetch(latitude, longitude)
                except ProviderError as exc:
                    self._log.error("Weather refresh for %s failed: %s", key, exc)
                    if self._health is not None:
                        self._health.record_provider_error(getattr(self.provider, "name", "weather"))
                    raise
                snapshot = self._build_snapshot(key, latitude, longitude, forecast)
                evicted = self.cache.put(snapshot)
                self._bump_generation(key)
                self._record_today(snapshot)
        finally:
            self._release(key, evicted)
        self._log.info("Weather for %s refreshed (%d hourly, %d daily)", key, len(snapshot.hourly), len(snapshot.daily))
        return snapshot

    def refresh_many(self, places: Iterable[PlaceCandidate]) -> List[Future]:
        """Refresh every place in the background; failures are logged, not raised.

        The futures are returned for callers that want to wait; ignoring them
        is fine.
        """
        executor = self._get_executor()
        futures = []
        for place in places:
            future = executor.submit(self._refresh_quietly, place)
            futures.append(future)
        return futures

    def get_yesterday(
        self,
        city: str,
        today: Optional[date] = None,
        *,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> Optional[DailyPoint]:
        """Return the recorded forecast for the day before ``today``, or ``None``.

        ``today`` defaults to the city's local date. The timezone comes from
        the cached snapshot, else from ``latitude``/``longitude``, else UTC.
        """
        if today is None:
            today = self._local_today(city, latitude, longitude)
        return self.history.get(city, today - timedelta(days=1))

    def compare_days(
        self, city: str, *, latitude: Optional[float] = None, longitude: Optional[float] = None
    ) -> DayComparison:
        snapshot = self.get_cached(city)
        today = self._local_today(city, latitude, longitude)
        by_day = {point.day: point for point in snapshot.daily} if snapshot else {}
        return DayComparison(
            yesterday=self.get_yesterday(city, today),
            today=by_day.get(today),
            tomorrow=by_day.get(today + timedelta(days=1)),
        )

    def is_stale(self, snapshot: WeatherSnapshot, max_age: float) -> bool:
        return snapshot.age_seconds(self._clock()) > max_age

    # Helpers ------------------------------------------------------------
    def _build_snapshot(
        self, key: str, latitude: float, longitude: float, forecast: ProviderForecast
    ) -> WeatherSnapshot:
        fetched_at = self._clock()
        tz = self._timezone_resolver(latitude, longitude, at=fetched_at)
        earliest = fetched_at - self.HOURLY_EPSILON
        hourly = [point for point in forecast.hourly if point.timestamp >= earliest]
        hourly.sort(key=lambda point: point.timestamp)
        daily = sorted(forecast.daily, key=lambda point: point.day)
        return WeatherSnapshot(
            city_key=key,
            fetched_at=fetched_at,
            current=replace(forecast.current, tz=tz),
            hourly=tuple(replace(point, tz=tz) for point in hourly[: self.HOURLY_LIMIT]),
            daily=tuple(daily[: self.DAILY_LIMIT]),
            tz=tz,
        )

    def _record_today(self, snapshot: WeatherSnapshot) -> None:
        today = snapshot.local_today()
        for point in snapshot.daily:
            if point.day == today:
                self.history.record(snapshot.city_key, point)
                return
        self._log.debug("No daily entry for %s on %s to record", snapshot.city_key, today)

    def _local_today(self, city: str, latitude: Optional[float] = None, longitude: Optional[float] = None) -> date:
        now = self._clock()
        snapshot = self.get_cached(city)
        if snapshot is not None:
            tz = snapshot.tz
        elif latitude is not None and longitude is not None:
            tz = self._timezone_resolver(latitude, longitude, at=now)
        else:
            tz = timezone.utc
        return now.astimezone(tz).date()

    def _refresh_quietly(self, place: PlaceCandidate) -> Optional[WeatherSnapshot]:
        try:
            return self.refresh(place.name, place.latitude, place.longitude)
        except Exception as exc:  # noqa: BLE001
            self._log.warning("Background refresh of %s failed: %s", place.name, exc)
            return None

    def _lock_for(self, key: str) -> Tuple[threading.Lock, int]:
        """Return the key's refresh lock and how many refreshes it has completed.

        Every call must be paired with ``_release``.
        """
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            self._lock_users[key] = self._lock_users.get(key, 0) + 1
            return lock, self._generations.get(key, 0)

    def _release(self, key: str, evicted: Iterable[str] = ()) -> None:
        """Drop lock bookkeeping for keys nobody waits on and nothing caches."""
        with self._locks_guard:
            users = self._lock_users.pop(key, 0) - 1
            if users > 0:
                self._lock_users[key] = users
            for candidate in (key, *evicted):
                if candidate in self._lock_users or candidate in self.cache:
                    continue
                self._key_locks.pop(candidate, None)
                self._generations.pop(candidate, None)

    def _generation(self, key: str) -> int:
        with self._locks_guard:
            return self._generations.get(key, 0)

    def _bump_generation(self, key: str) -> None:
        with self._locks_guard:
            self._generations[key] = self._generations.get(key, 0) + 1

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="weather-refresh")
        return self._executor


__all__ = ["ForecastProvider", "WeatherAggregator"]
