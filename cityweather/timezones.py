"""Derive a display timezone for a coordinate without an external service.

The longitude gives a rough offset (15 degrees per hour). Boxes known to
disagree with that rule are checked first, then the offset is upgraded to a
named IANA zone from a preference list when one is close enough.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import config

logger = logging.getLogger(__name__)

Box = Tuple[float, float, float, float]

MAX_OFFSET_DIFFERENCE = timedelta(minutes=30)


def longitude_offset(longitude: float) -> timedelta:
    return timedelta(seconds=round(longitude / 15.0) * 3600)


def _in_box(latitude: float, longitude: float, box: Box) -> bool:
    lat_min, lat_max, lon_min, lon_max = box
    return lat_min <= latitude <= lat_max and lon_min <= longitude <= lon_max


def _load_zone(name: str) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %s ignored", name)
        return None


def resolve_timezone(
    latitude: float,
    longitude: float,
    *,
    at: Optional[datetime] = None,
    overrides: Iterable[Tuple[Box, str]] = config.TIMEZONE_OVERRIDES,
    candidates: Sequence[str] = config.PREFERRED_TIMEZONES,
) -> tzinfo:
    at = at or datetime.now(timezone.utc)
    for box, zone_name in overrides:
        if _in_box(latitude, longitude, box):
            zone = _load_zone(zone_name)
            if zone is not None:
                return zone

    offset = longitude_offset(longitude)
    best: Optional[ZoneInfo] = None
    best_difference: Optional[timedelta] = None
    for name in candidates:
        zone = _load_zone(name)
        if zone is None:
            continue
        zone_offset = at.astimezone(zone).utcoffset()
        if zone_offset is None:
            continue
        difference = abs(zone_offset - offset)
        if difference > MAX_OFFSET_DIFFERENCE:
            continue
        if best_difference is None or difference < best_difference:
            best, best_difference = zone, difference
    if best is not None:
        return best
    return timezone(offset)


__all__ = ["longitude_offset", "resolve_timezone"]
