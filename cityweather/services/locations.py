"""Turn device coordinates into a city name.

The resolver runs one reverse-geocoding request at a time::

    IDLE -> REQUESTING -> {RESOLVED, FAILED, TIMED_OUT, CANCELLED} -> IDLE

Callers that arrive while a request is in flight start no new work and are
handed the in-flight future, so they receive the same outcome. Each request
delivers exactly one outcome; whatever fires later (a slow geocoder answer,
the timeout timer, ``cleanup()``) is ignored.
"""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import Executor, Future, InvalidStateError, ThreadPoolExecutor
from enum import Enum
from functools import partial
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple

from .. import config
from ..entities import GeocodeResult, PlaceCandidate
from ..errors import CityWeatherError, PermissionDenied, RequestCancelled, Timeout, UnknownError
from ..gazetteer import known_cities as default_known_cities
from ..health import HealthRegistry
from .places import Geocoder


EARTH_RADIUS_KM = 6371.0088


class ResolverState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"


class ResolverOutcome(str, Enum):
    RESOLVED = "resolved"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


def round_coordinate(latitude: float, longitude: float, precision: int = config.COORDINATE_PRECISION) -> Tuple[float, float]:
    return round(latitude, precision), round(longitude, precision)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def nearest_city(latitude: float, longitude: float, cities: Iterable[PlaceCandidate]) -> Optional[PlaceCandidate]:
    best: Optional[PlaceCandidate] = None
    best_distance = math.inf
    for city in cities:
        distance = haversine_km(latitude, longitude, city.latitude, city.longitude)
        if distance < best_distance:
            best, best_distance = city, distance
    return best


def name_from_placemarks(results: Sequence[GeocodeResult]) -> Optional[str]:
    """Locality first, then the administrative area, from the first usable placemark."""
    for result in results:
        for candidate in (result.locality, result.administrative_area):
            if candidate and candidate.strip():
                return candidate.strip()
    return None


class _Request:
    __slots__ = ("future", "timer", "work", "resolved")

    def __init__(self, future: Future) -> None:
        self.future = future
        self.timer: Any = None
        self.work: Optional[Future] = None
        self.resolved = False


class LocationResolver:
    def __init__(
        self,
        geocoder: Geocoder,
        known_cities: Optional[Iterable[PlaceCandidate]] = None,
        *,
        default_city: Optional[PlaceCandidate] = None,
        timeout: float = config.RESOLVE_TIMEOUT_SECONDS,
        precision: int = config.COORDINATE_PRECISION,
        authorization: Optional[Callable[[], bool]] = None,
        name_cache: Optional[Any] = None,
        name_ttl: int = config.RESOLVED_NAME_TTL_SECONDS,
        executor: Optional[Executor] = None,
        timer_factory: Callable[..., Any] = threading.Timer,
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self.geocoder = geocoder
        self.known_cities: List[PlaceCandidate] = list(
            default_known_cities() if known_cities is None else known_cities
        )
        if default_city is None:
            name, latitude, longitude = config.DEFAULT_CITY
            default_city = PlaceCandidate(name=name, latitude=latitude, longitude=longitude)
        self.default_city = default_city
        self.timeout = timeout
        self.precision = precision
        self._authorization = authorization
        self._names = name_cache
        self._name_ttl = name_ttl
        self._executor = executor
        self._owns_executor = executor is None
        self._timer_factory = timer_factory
        self._health = health
        self._lock = threading.Lock()
        self._request: Optional[_Request] = None
        self._state = ResolverState.IDLE
        self._last_outcome: Optional[ResolverOutcome] = None
        self._log = logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    @property
    def state(self) -> ResolverState:
        with self._lock:
            return self._state

    @property
    def last_outcome(self) -> Optional[ResolverOutcome]:
        with self._lock:
            return self._last_outcome

    def resolve(self, latitude: float, longitude: float) -> str:
        """Block until the city name (or a :class:`CityWeatherError`) is available."""
        return self.submit(latitude, longitude).result()

    def submit(self, latitude: float, longitude: float) -> "Future[str]":
        if self._authorization is not None and not self._authorization():
            raise PermissionDenied("location access is not authorized")
        latitude, longitude = round_coordinate(latitude, longitude, self.precision)

        with self._lock:
            if self._request is not None:
                self._log.info("Resolve already in flight, joining it")
                return self._request.future
            cached = self._cached_name(latitude, longitude)
            if cached is not None:
                self._last_outcome = ResolverOutcome.RESOLVED
                done: Future = Future()
                done.set_result(cached)
                return done
            request = _Request(Future())
            request.timer = self._timer_factory(self.timeout, self._on_timeout, args=(request,))
            request.timer.daemon = True
            self._request = request
            self._state = ResolverState.REQUESTING

        self._log.info("Resolving %s,%s", latitude, longitude)
        request.timer.start()
        try:
            work = self._get_executor().submit(self.geocoder.reverse, latitude, longitude)
        except RuntimeError as exc:
            self._log.error("Could not schedule reverse geocoding: %s", exc)
            self._finish(request, ResolverOutcome.FAILED, error=UnknownError(str(exc)))
            return request.future

        with self._lock:
            if request.resolved:
                work.cancel()
            else:
                request.work = work
        work.add_done_callback(partial(self._on_geocoded, request, latitude, longitude))
        return request.future

    def cleanup(self) -> None:
        """Cancel the in-flight request, if any. Safe to call when idle."""
        with self._lock:
            request = self._request
        if request is None:
            return
        if self._finish(request, ResolverOutcome.CANCELLED, error=RequestCancelled("resolve cancelled")):
            self._log.info("Resolve cancelled")

    def close(self) -> None:
        self.cleanup()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)

    # Callbacks ----------------------------------------------------------
    def _on_timeout(self, request: _Request) -> None:
        if self._finish(request, ResolverOutcome.TIMED_OUT, error=Timeout(f"no answer within {self.timeout}s")):
            self._log.warning("Resolve timed out after %ss", self.timeout)

    def _on_geocoded(self, request: _Request, latitude: float, longitude: float, work: Future) -> None:
        if work.cancelled():
            return
        name: Optional[str] = None
        try:
            name = name_from_placemarks(work.result())
        except Exception as exc:  # noqa: BLE001 - geocoder failures fall back to known cities
            self._log.warning("Reverse geocoding failed: %s", exc)
            if self._health is not None:
                self._health.record_provider_error(getattr(self.geocoder, "name", "geocoder"))

        if name is not None:
            if self._finish(request, ResolverOutcome.RESOLVED, result=name) and self._names is not None:
                self._names.set(self._cache_key(latitude, longitude), name, self._name_ttl)
            return

        fallback = nearest_city(latitude, longitude, self.known_cities) or self.default_city
        self._log.warning("Falling back to %s for %s,%s", fallback.name, latitude, longitude)
        self._finish(request, ResolverOutcome.RESOLVED, result=fallback.name)

    # Helpers ------------------------------------------------------------
    def _finish(
        self,
        request: _Request,
        outcome: ResolverOutcome,
        *,
        result: Optional[str] = None,
        error: Optional[CityWeatherError] = None,
    ) -> bool:
        with self._lock:
            if request.resolved or self._request is not request:
                return False
            request.resolved = True
            self._request = None
            self._state = ResolverState.IDLE
            self._last_outcome = outcome
        if request.timer is not None:
            request.timer.cancel()
        if request.work is not None and outcome is not ResolverOutcome.RESOLVED:
            request.work.cancel()
        if self._health is not None:
            self._health.record_resolver_outcome(outcome.value)
        try:
            if error is not None:
                request.future.set_exception(error)
            else:
                request.future.set_result(result)
        except InvalidStateError:
            self._log.debug("Caller abandoned the resolve future")
        return True

    def _cache_key(self, latitude: float, longitude: float) -> str:
        return f"resolve:{latitude:.{self.precision}f}:{longitude:.{self.precision}f}"

    def _cached_name(self, latitude: float, longitude: float) -> Optional[str]:
        if self._names is None:
            return None
        return self._names.get(self._cache_key(latitude, longitude))

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reverse-geocode")
        return self._executor


__all__ = [
    "LocationResolver",
    "ResolverOutcome",
    "ResolverState",
    "haversine_km",
    "name_from_placemarks",
    "nearest_city",
    "round_coordinate",
]
