from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from .base import HTTPProvider, ProviderError, safe_float
from ..entities import DailyPoint, ProviderForecast, WeatherPoint


# WMO weather interpretation codes -> (condition, symbol name)
WMO_CONDITIONS: Dict[int, Tuple[str, str]] = {
    0: ("Clear", "sun.max"),
    1: ("Mostly Clear", "sun.max"),
    2: ("Partly Cloudy", "cloud.sun"),
    3: ("Cloudy", "cloud"),
    45: ("Fog", "cloud.fog"),
    48: ("Freezing Fog", "cloud.fog"),
    51: ("Light Drizzle", "cloud.drizzle"),
    53: ("Drizzle", "cloud.drizzle"),
    55: ("Heavy Drizzle", "cloud.drizzle"),
    56: ("Freezing Drizzle", "cloud.sleet"),
    57: ("Freezing Drizzle", "cloud.sleet"),
    61: ("Light Rain", "cloud.rain"),
    63: ("Rain", "cloud.rain"),
    65: ("Heavy Rain", "cloud.heavyrain"),
    66: ("Freezing Rain", "cloud.sleet"),
    67: ("Freezing Rain", "cloud.sleet"),
    71: ("Light Snow", "cloud.snow"),
    73: ("Snow", "cloud.snow"),
    75: ("Heavy Snow", "cloud.snow"),
    77: ("Snow Grains", "cloud.snow"),
    80: ("Rain Showers", "cloud.sun.rain"),
    81: ("Rain Showers", "cloud.sun.rain"),
    82: ("Heavy Rain Showers", "cloud.heavyrain"),
    85: ("Snow Showers", "cloud.snow"),
    86: ("Heavy Snow Showers", "cloud.snow"),
    95: ("Thunderstorm", "cloud.bolt.rain"),
    96: ("Thunderstorm with Hail", "cloud.bolt.rain"),
    99: ("Thunderstorm with Hail", "cloud.bolt.rain"),
}
UNKNOWN_CONDITION = ("Unknown", "questionmark")

_POINT_FIELDS = [
    "temperature_2m",
    "apparent_temperature",
    "relative_humidity_2m",
    "weather_code",
    "wind_speed_10m",
    "pressure_msl",
    "is_day",
]
_HOURLY_FIELDS = _POINT_FIELDS + ["precipitation_probability", "uv_index", "visibility"]
_DAILY_FIELDS = [
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_probability_max",
]


def describe_weather_code(code: Optional[float]) -> Tuple[str, str]:
    if code is None:
        return UNKNOWN_CONDITION
    return WMO_CONDITIONS.get(int(code), UNKNOWN_CONDITION)


class OpenMeteoProvider(HTTPProvider):
    """Weather Provider backed by the Open-Meteo forecast API.

    One request returns current conditions, the hourly series and the daily
    series. Times are requested in the location's own timezone (``auto``) so
    daily buckets follow local days, and converted to UTC here.
    """

    name = "open-meteo"
    base_url = "https://api.open-meteo.com/v1/forecast"

    def __init__(self, base_url: Optional[str] = None, forecast_days: int = 7, **kwargs) -> None:
        super().__init__(**kwargs)
        self.base_url = base_url or self.base_url
        self.forecast_days = forecast_days
        self._log = logging.getLogger(self.__class__.__name__)

    def fetch(self, latitude: float, longitude: float) -> ProviderForecast:
        params = {
            "latitude": latitude,
            "longitude": longitude,
            "current": ",".join(_POINT_FIELDS),
            "hourly": ",".join(_HOURLY_FIELDS),
            "daily": ",".join(_DAILY_FIELDS),
            "timezone": "auto",
            "wind_speed_unit": "ms",
            "forecast_days": self.forecast_days,
        }
        response = self._request("GET", self.base_url, params=params)
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProviderError(f"{self.name}: unexpected payload")
        try:
            return self._parse_forecast(data)
        except (TypeError, ValueError, AttributeError, OverflowError) as exc:
            self._log.error("Malformed forecast payload: %s", exc)
            raise ProviderError(f"{self.name}: invalid payload") from exc

    # helpers ------------------------------------------------------------
    def _parse_forecast(self, data: dict) -> ProviderForecast:
        offset = timedelta(seconds=int(data.get("utc_offset_seconds") or 0))
        hourly = self._parse_hourly(data.get("hourly") or {}, offset)
        current = self._parse_current(data.get("current"), offset, hourly)
        daily = self._parse_daily(data.get("daily") or {})
        return ProviderForecast(current=current, hourly=tuple(hourly), daily=tuple(daily))

    def _parse_current(self, payload: Optional[dict], offset: timedelta, hourly: List[WeatherPoint]) -> WeatherPoint:
        if not payload:
            raise ProviderError("missing current weather")
        timestamp = self._parse_time(payload.get("time"), offset)
        slot = _matching_hour(hourly, timestamp)
        condition, symbol = describe_weather_code(safe_float(payload.get("weather_code")))
        return WeatherPoint(
            timestamp=timestamp,
            temperature_c=safe_float(payload.get("temperature_2m")),
            feels_like_c=safe_float(payload.get("apparent_temperature")),
            condition=condition,
            symbol_name=symbol,
            wind_speed_ms=safe_float(payload.get("wind_speed_10m")),
            precipitation_chance=slot.precipitation_chance if slot else None,
            uv_index=slot.uv_index if slot else None,
            humidity_pct=safe_float(payload.get("relative_humidity_2m")),
            pressure_hpa=safe_float(payload.get("pressure_msl")),
            visibility_km=slot.visibility_km if slot else None,
            is_day=_as_bool(payload.get("is_day")),
        )

    def _parse_hourly(self, hourly: dict, offset: timedelta) -> List[WeatherPoint]:
        timestamps = hourly.get("time") or []
        if not timestamps:
            raise ProviderError("missing hourly data")
        result: List[WeatherPoint] = []
        for idx, ts in enumerate(timestamps):
            condition, symbol = describe_weather_code(_safe_index(hourly.get("weather_code"), idx))
            visibility_m = _safe_index(hourly.get("visibility"), idx)
            result.append(
                WeatherPoint(
                    timestamp=self._parse_time(ts, offset),
                    temperature_c=_safe_index(hourly.get("temperature_2m"), idx),
                    feels_like_c=_safe_index(hourly.get("apparent_temperature"), idx),
                    condition=condition,
                    symbol_name=symbol,
                    wind_speed_ms=_safe_index(hourly.get("wind_speed_10m"), idx),
                    precipitation_chance=_safe_index(hourly.get("precipitation_probability"), idx),
                    uv_index=_safe_index(hourly.get("uv_index"), idx),
                    humidity_pct=_safe_index(hourly.get("relative_humidity_2m"), idx),
                    pressure_hpa=_safe_index(hourly.get("pressure_msl"), idx),
                    visibility_km=round(visibility_m / 1000.0, 2) if visibility_m is not None else None,
                    is_day=_as_bool(_safe_index(hourly.get("is_day"), idx)),
                )
            )
        return result

    def _parse_daily(self, daily: dict) -> List[DailyPoint]:
        dates = daily.get("time") or []
        if not dates:
            raise ProviderError("missing daily data")
        result: List[DailyPoint] = []
        for idx, date_str in enumerate(dates):
            condition, symbol = describe_weather_code(_safe_index(daily.get("weather_code"), idx))
            result.append(
                DailyPoint(
                    day=date.fromisoformat(date_str),
                    low_c=_safe_index(daily.get("temperature_2m_min"), idx),
                    high_c=_safe_index(daily.get("temperature_2m_max"), idx),
                    condition=condition,
                    symbol_name=symbol,
                    precipitation_chance=_safe_index(daily.get("precipitation_probability_max"), idx),
                )
            )
        return result

    def _parse_time(self, value: Optional[str], offset: timedelta) -> datetime:
        if not value:
            raise ProviderError(f"{self.name}: missing timestamp")
        if value.endswith("Z"):
            value = value[:-1]
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone(offset))
        return parsed.astimezone(timezone.utc)


def _matching_hour(hourly: List[WeatherPoint], when: datetime) -> Optional[WeatherPoint]:
    hour = when.replace(minute=0, second=0, microsecond=0)
    for point in hourly:
        if point.timestamp == hour:
            return point
    return None


def _as_bool(value: Optional[object]) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def _safe_index(values: Optional[List[Optional[float]]], index: int) -> Optional[float]:
    try:
        value = values[index]  # type: ignore[index]
    except (IndexError, TypeError):
        return None
    return safe_float(value)


__all__ = ["OpenMeteoProvider", "WMO_CONDITIONS", "describe_weather_code"]
