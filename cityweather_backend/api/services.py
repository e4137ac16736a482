"""Wiring of the core services from Django settings.

Views and management commands share one :class:`ServiceContainer` per
process. Tests swap it with :func:`reset_container`.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

from django.conf import settings
from django.core.cache import caches

from cityweather.cache import SnapshotCache
from cityweather.health import HealthRegistry
from cityweather.providers import NominatimGeocoder, OpenMeteoProvider, RequestConfig
from cityweather.services import LocationResolver, PlaceMatcher, RecentSelectionsStore, WeatherAggregator
from cityweather.services.places import Geocoder
from cityweather.storage import Database, SQLiteDailyHistory, SQLiteKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    matcher: PlaceMatcher
    aggregator: WeatherAggregator
    recents: RecentSelectionsStore
    health: HealthRegistry
    geocoder: Geocoder
    name_cache: Any = None
    resolve_timeout: float = 10.0
    weather_max_age: float = 900.0
    resolver_executor: Executor = field(
        default_factory=lambda: ThreadPoolExecutor(max_workers=4, thread_name_prefix="reverse-geocode")
    )

    def new_resolver(self) -> LocationResolver:
        """Return a resolver for one API request.

        Each request gets its own single-flight state; resolved names are
        shared through ``name_cache``.
        """
        return LocationResolver(
            self.geocoder,
            timeout=self.resolve_timeout,
            name_cache=self.name_cache,
            executor=self.resolver_executor,
            health=self.health,
        )


def build_container() -> ServiceContainer:
    health = HealthRegistry()
    request_config = RequestConfig(
        timeout=settings.CITYWEATHER_HTTP_TIMEOUT,
        user_agent=settings.CITYWEATHER_USER_AGENT,
    )
    geocoder = NominatimGeocoder(base_url=settings.CITYWEATHER_NOMINATIM_URL, request_config=request_config)
    provider = OpenMeteoProvider(base_url=settings.CITYWEATHER_OPENMETEO_URL, request_config=request_config)
    cache_backend = caches[settings.CITYWEATHER_CACHE_ALIAS]
    database = Database(settings.CITYWEATHER_DB_PATH)

    snapshots = SnapshotCache(settings.CITYWEATHER_SNAPSHOT_CAPACITY)
    health.watch_cache(snapshots.stats)
    logger.info("Service container built (db=%s)", settings.CITYWEATHER_DB_PATH)
    return ServiceContainer(
        matcher=PlaceMatcher(
            geocoder=geocoder,
            home_country=settings.CITYWEATHER_HOME_COUNTRY,
            search_timeout=settings.CITYWEATHER_SEARCH_TIMEOUT,
            cache=cache_backend,
            health=health,
        ),
        aggregator=WeatherAggregator(
            provider,
            cache=snapshots,
            history=SQLiteDailyHistory(database),
            health=health,
        ),
        recents=RecentSelectionsStore(
            SQLiteKeyValueStore(database),
            capacity=settings.CITYWEATHER_RECENTS_CAPACITY,
        ),
        health=health,
        geocoder=geocoder,
        name_cache=cache_backend,
        resolve_timeout=settings.CITYWEATHER_RESOLVE_TIMEOUT,
        weather_max_age=settings.CITYWEATHER_WEATHER_MAX_AGE,
    )


_container: Optional[ServiceContainer] = None
_container_lock = threading.Lock()


def get_container() -> ServiceContainer:
    global _container
    with _container_lock:
        if _container is None:
            _container = build_container()
        return _container


def reset_container(container: Optional[ServiceContainer] = None) -> None:
    """Helper for tests to swap the service container; ``None`` rebuilds lazily."""
    global _container
    with _container_lock:
        _container = container


__all__ = ["ServiceContainer", "build_container", "get_container", "reset_container"]
