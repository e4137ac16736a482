"""Place search over the curated gazetteer merged with geocoder results."""
from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence

from .. import config
from ..entities import GazetteerEntry, GeocodeResult, PlaceCandidate
from ..gazetteer import DEFAULT_GAZETTEER
from ..health import HealthRegistry


logger = logging.getLogger(__name__)

TIER_EXACT = 0
TIER_PREFIX = 1
TIER_SUBSTRING = 2
TIER_MULTI_TOKEN = 3
TIER_SINGLE_CHARACTER = 4


class Geocoder(Protocol):
    name: str

    def search(self, text: str) -> List[GeocodeResult]:
        ...

    def reverse(self, latitude: float, longitude: float) -> List[GeocodeResult]:
        ...


def normalize_query(query: Optional[str]) -> str:
    return (query or "").strip().lower()


def match_tier(entry: GazetteerEntry, normalized: str) -> Optional[int]:
    """Return the best tier at which ``entry`` matches, or ``None``."""
    if not normalized:
        return None
    name = entry.name.lower()
    aliases = entry.aliases
    if name == normalized or normalized in aliases:
        return TIER_EXACT
    if name.startswith(normalized) or any(alias.startswith(normalized) for alias in aliases):
        return TIER_PREFIX
    if normalized in name or any(normalized in alias for alias in aliases):
        return TIER_SUBSTRING
    tokens = normalized.split()
    if len(tokens) >= 2 and all(
        token in name or any(token in alias for alias in aliases) for token in tokens
    ):
        return TIER_MULTI_TOKEN
    if len(normalized) == 1 and normalized in name:
        return TIER_SINGLE_CHARACTER
    return None


def _is_cjk(char: str) -> bool:
    return "一" <= char <= "鿿"


def candidate_from_geocode(
    result: GeocodeResult,
    home_country: str = config.HOME_COUNTRY_CODE,
    suffixes: Sequence[str] = config.ADMINISTRATIVE_SUFFIXES,
) -> Optional[PlaceCandidate]:
    """Name a geocoder result: point of interest > sub-locality > locality.

    Domestic sub-localities and localities get an administrative suffix when
    they lack one; foreign results are qualified with their country.
    """
    if result.latitude is None or result.longitude is None:
        return None
    if result.name:
        name, suffix = result.name.strip(), None
    elif result.sub_locality:
        name, suffix = result.sub_locality.strip(), "区"
    elif result.locality:
        name, suffix = result.locality.strip(), "市"
    elif result.administrative_area:
        name, suffix = result.administrative_area.strip(), None
    else:
        return None
    if not name:
        return None

    domestic = (result.country_code or "").upper() == home_country.upper()
    if domestic:
        if suffix and len(name) >= 2 and _is_cjk(name[-1]) and not name.endswith(tuple(suffixes)):
            name = f"{name}{suffix}"
    elif result.country and not name.endswith(f", {result.country}"):
        name = f"{name}, {result.country}"
    return PlaceCandidate(name=name, latitude=result.latitude, longitude=result.longitude)


class PlaceMatcher:
    """Matches queries against the gazetteer and the geocoding provider.

    ``search`` never raises: geocoder failures and timeouts are logged and the
    gazetteer results are returned on their own.
    """

    def __init__(
        self,
        gazetteer: Iterable[GazetteerEntry] = DEFAULT_GAZETTEER,
        geocoder: Optional[Geocoder] = None,
        *,
        supplementary: Iterable[GazetteerEntry] = (),
        home_country: str = config.HOME_COUNTRY_CODE,
        limit: int = config.SEARCH_RESULT_LIMIT,
        hot_count: int = config.HOT_CITY_COUNT,
        search_timeout: float = config.SEARCH_TIMEOUT_SECONDS,
        cache: Optional[Any] = None,
        cache_ttl: int = config.SEARCH_CACHE_TTL_SECONDS,
        executor: Optional[Executor] = None,
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self._gazetteer: List[GazetteerEntry] = list(gazetteer)
        self._entries: List[GazetteerEntry] = self._gazetteer + list(supplementary)
        self.geocoder = geocoder
        self.home_country = home_country
        self.limit = limit
        self.hot_count = hot_count
        self.search_timeout = search_timeout
        self.cache = cache
        self.cache_ttl = cache_ttl
        self._executor = executor
        self._health = health
        self._log = logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def hot_cities(self) -> List[PlaceCandidate]:
        return [entry.place for entry in self._gazetteer[: self.hot_count]]

    def all_places(self) -> List[PlaceCandidate]:
        return [entry.place for entry in self._entries]

    def search(self, query: Optional[str]) -> List[PlaceCandidate]:
        normalized = normalize_query(query)
        if not normalized:
            return self.hot_cities()

        pending = self._start_remote_search((query or "").strip(), normalized)
        local = [entry.place for entry in self._entries if match_tier(entry, normalized) is not None]
        remote = self._collect_remote(pending, normalized)

        merged: Dict[str, PlaceCandidate] = {}
        for place in local + remote:
            merged.setdefault(place.name, place)
        ranked = sorted(
            merged.values(),
            key=lambda place: (not place.name.lower().startswith(normalized), len(place.name)),
        )
        self._log.debug("Search %r matched %d local, %d remote", normalized, len(local), len(remote))
        return ranked[: self.limit]

    # Helpers ------------------------------------------------------------
    def _cache_key(self, normalized: str) -> str:
        return f"places:search:{normalized}"

    def _start_remote_search(self, raw_query: str, normalized: str) -> Optional[Future]:
        if self.geocoder is None:
            return None
        if self.cache is not None:
            cached = self.cache.get(self._cache_key(normalized))
            if cached is not None:
                done: Future = Future()
                done.set_result(cached)
                return done
        try:
            return self._get_executor().submit(self._remote_candidates, raw_query, normalized)
        except RuntimeError as exc:
            self._log.warning("Could not schedule geocoder search: %s", exc)
            return None

    def _remote_candidates(self, raw_query: str, normalized: str) -> List[PlaceCandidate]:
        results = self.geocoder.search(raw_query)  # type: ignore[union-attr]
        candidates = []
        for result in results:
            candidate = candidate_from_geocode(result, self.home_country)
            if candidate is not None:
                candidates.append(candidate)
        if self.cache is not None:
            self.cache.set(self._cache_key(normalized), candidates, self.cache_ttl)
        return candidates

    def _collect_remote(self, pending: Optional[Future], normalized: str) -> List[PlaceCandidate]:
        if pending is None:
            return []
        try:
            return list(pending.result(timeout=self.search_timeout))
        except FutureTimeout:
            self._log.warning("Geocoder search for %r timed out after %ss", normalized, self.search_timeout)
        except Exception as exc:  # noqa: BLE001 - geocoder failures never fail a search
            self._log.warning("Geocoder search for %r failed: %s", normalized, exc)
        if self._health is not None and self.geocoder is not None:
            self._health.record_provider_error(getattr(self.geocoder, "name", "geocoder"))
        return []

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="place-search")
        return self._executor


__all__ = [
    "Geocoder",
    "PlaceMatcher",
    "TIER_EXACT",
    "TIER_MULTI_TOKEN",
    "TIER_PREFIX",
    "TIER_SINGLE_CHARACTER",
    "TIER_SUBSTRING",
    "candidate_from_geocode",
    "match_tier",
    "normalize_query",
]
