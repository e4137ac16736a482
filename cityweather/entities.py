from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, tzinfo, timezone
from typing import FrozenSet, Optional, Tuple
from uuid import UUID, uuid4


def normalize_city_key(name: str) -> str:
    """Return the cache/lookup key for a city name (trimmed, case-folded)."""
    return name.strip().casefold()


def _require_name(name: str) -> None:
    if not name or not name.strip():
        raise ValueError("name must not be empty")


@dataclass(frozen=True, eq=False)
class PlaceCandidate:
    """A named place with coordinates; two candidates are equal when names are."""

    name: str
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        _require_name(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PlaceCandidate):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)


@dataclass(frozen=True)
class GazetteerEntry:
    place: PlaceCandidate
    aliases: FrozenSet[str] = frozenset()

    @property
    def name(self) -> str:
        return self.place.name


@dataclass(frozen=True)
class GeocodeResult:
    """Raw geocoder answer. Any of the name components may be missing."""

    latitude: Optional[float]
    longitude: Optional[float]
    name: Optional[str] = None
    sub_locality: Optional[str] = None
    locality: Optional[str] = None
    administrative_area: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None


@dataclass(frozen=True)
class RecentSelection:
    name: str
    latitude: float
    longitude: float
    id: UUID = field(default_factory=uuid4)
    added_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        _require_name(self.name)


@dataclass(frozen=True)
class WeatherPoint:
    """Normalized weather conditions at one instant.

    Used both for the current conditions and for every hourly forecast slot.
    Units:
    - temperature in Celsius
    - wind speed in metres per second (m/s)
    - pressure in hectopascal (hPa)
    - visibility in kilometres
    - precipitation chance and humidity in percent
    """

    timestamp: datetime
    temperature_c: Optional[float]
    feels_like_c: Optional[float] = None
    condition: str = "Unknown"
    symbol_name: str = "questionmark"
    wind_speed_ms: Optional[float] = None
    precipitation_chance: Optional[float] = None
    uv_index: Optional[float] = None
    humidity_pct: Optional[float] = None
    pressure_hpa: Optional[float] = None
    visibility_km: Optional[float] = None
    is_day: Optional[bool] = None
    tz: tzinfo = timezone.utc


CurrentWeather = WeatherPoint
HourlyPoint = WeatherPoint


@dataclass(frozen=True)
class DailyPoint:
    day: date
    low_c: Optional[float]
    high_c: Optional[float]
    condition: str = "Unknown"
    symbol_name: str = "questionmark"
    precipitation_chance: Optional[float] = None


@dataclass(frozen=True)
class ProviderForecast:
    current: WeatherPoint
    hourly: Tuple[WeatherPoint, ...]
    daily: Tuple[DailyPoint, ...]


@dataclass(frozen=True)
class WeatherSnapshot:
    city_key: str
    fetched_at: datetime
    current: WeatherPoint
    hourly: Tuple[WeatherPoint, ...]
    daily: Tuple[DailyPoint, ...]
    tz: tzinfo = timezone.utc

    @property
    def timezone_name(self) -> str:
        return str(self.tz)

    def local_today(self) -> date:
        return self.fetched_at.astimezone(self.tz).date()

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()


@dataclass(frozen=True)
class DayComparison:
    yesterday: Optional[DailyPoint]
    today: Optional[DailyPoint]
    tomorrow: Optional[DailyPoint]


__all__ = [
    "CurrentWeather",
    "DailyPoint",
    "DayComparison",
    "GazetteerEntry",
    "GeocodeResult",
    "HourlyPoint",
    "PlaceCandidate",
    "ProviderForecast",
    "RecentSelection",
    "WeatherPoint",
    "WeatherSnapshot",
    "normalize_city_key",
]
