"""Plain-dict renderings of the core entities for JSON responses."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings

from cityweather.clothing import recommend_clothing
from cityweather.entities import DailyPoint, DayComparison, PlaceCandidate, RecentSelection, WeatherPoint, WeatherSnapshot


def _utc_iso(value: datetime) -> str:
    return value.astimezone(settings.DEFAULT_TIMEZONE).isoformat().replace("+00:00", "Z")


def serialize_place(place: PlaceCandidate) -> Dict[str, Any]:
    return {"name": place.name, "latitude": place.latitude, "longitude": place.longitude}


def serialize_places(places: Iterable[PlaceCandidate]) -> List[Dict[str, Any]]:
    return [serialize_place(place) for place in places]


def serialize_recent(selection: RecentSelection) -> Dict[str, Any]:
    return {
        "id": str(selection.id),
        "name": selection.name,
        "latitude": selection.latitude,
        "longitude": selection.longitude,
        "added_at": _utc_iso(selection.added_at),
    }


def serialize_point(point: WeatherPoint) -> Dict[str, Any]:
    return {
        "time": _utc_iso(point.timestamp),
        "local_time": point.timestamp.astimezone(point.tz).isoformat(),
        "temperature_c": point.temperature_c,
        "feels_like_c": point.feels_like_c,
        "condition": point.condition,
        "symbol_name": point.symbol_name,
        "wind_speed_ms": point.wind_speed_ms,
        "precipitation_chance": point.precipitation_chance,
        "uv_index": point.uv_index,
        "humidity_pct": point.humidity_pct,
        "pressure_hpa": point.pressure_hpa,
        "visibility_km": point.visibility_km,
        "is_day": point.is_day,
    }


def serialize_daily(point: Optional[DailyPoint]) -> Optional[Dict[str, Any]]:
    if point is None:
        return None
    return {
        "day": point.day.isoformat(),
        "low_c": point.low_c,
        "high_c": point.high_c,
        "condition": point.condition,
        "symbol_name": point.symbol_name,
        "precipitation_chance": point.precipitation_chance,
    }


def serialize_comparison(comparison: DayComparison) -> Dict[str, Any]:
    return {
        "yesterday": serialize_daily(comparison.yesterday),
        "today": serialize_daily(comparison.today),
        "tomorrow": serialize_daily(comparison.tomorrow),
    }


def serialize_snapshot(
    city: str,
    snapshot: WeatherSnapshot,
    *,
    yesterday: Optional[DailyPoint] = None,
    stale: bool = False,
) -> Dict[str, Any]:
    clothing = recommend_clothing(snapshot.current.temperature_c)
    return {
        "city": city,
        "city_key": snapshot.city_key,
        "fetched_at": _utc_iso(snapshot.fetched_at),
        "timezone": snapshot.timezone_name,
        "stale": stale,
        "current": serialize_point(snapshot.current),
        "hourly": [serialize_point(point) for point in snapshot.hourly],
        "daily": [serialize_daily(point) for point in snapshot.daily],
        "yesterday": serialize_daily(yesterday),
        "clothing": None
        if clothing is None
        else {
            "outfit": clothing.outfit,
            "description": clothing.description,
            "model_name": clothing.model_name,
        },
    }


__all__ = [
    "serialize_comparison",
    "serialize_daily",
    "serialize_place",
    "serialize_places",
    "serialize_point",
    "serialize_recent",
    "serialize_snapshot",
]
