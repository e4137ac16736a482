from __future__ import annotations

import logging
from typing import List, Optional

from .base import HTTPProvider, ProviderError, safe_float
from ..entities import GeocodeResult

_LOCALITY_KEYS = ("city", "town", "village", "municipality", "county")
_SUB_LOCALITY_KEYS = ("suburb", "city_district", "district", "borough", "neighbourhood", "quarter")
_ADMINISTRATIVE_KEYS = ("state", "province", "region")

# Address types whose ``name`` is a settlement or an area rather than a point of interest
_AREA_TYPES = frozenset(
    _LOCALITY_KEYS + _SUB_LOCALITY_KEYS + _ADMINISTRATIVE_KEYS + ("country", "postcode", "road", "hamlet")
)


def _first(address: dict, keys) -> Optional[str]:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return None


class NominatimGeocoder(HTTPProvider):
    """Geocoding Provider backed by an OpenStreetMap Nominatim instance."""

    name = "nominatim"
    base_url = "https://nominatim.openstreetmap.org"

    def __init__(
        self,
        base_url: Optional[str] = None,
        accept_language: str = "zh-CN,en",
        limit: int = 10,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url or self.base_url).rstrip("/")
        self.accept_language = accept_language
        self.limit = limit
        self._log = logging.getLogger(self.__class__.__name__)

    def search(self, text: str) -> List[GeocodeResult]:
        params = {
            "q": text,
            "format": "jsonv2",
            "addressdetails": 1,
            "limit": self.limit,
            "accept-language": self.accept_language,
        }
        response = self._request("GET", f"{self.base_url}/search", params=params)
        data = self._json(response)
        if not isinstance(data, list):
            raise ProviderError("unexpected search payload")
        return [self._to_result(item) for item in data if isinstance(item, dict)]

    def reverse(self, latitude: float, longitude: float) -> List[GeocodeResult]:
        params = {
            "lat": latitude,
            "lon": longitude,
            "format": "jsonv2",
            "addressdetails": 1,
            "zoom": 14,
            "accept-language": self.accept_language,
        }
        response = self._request("GET", f"{self.base_url}/reverse", params=params)
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProviderError("unexpected reverse payload")
        if data.get("error"):
            self._log.info("Reverse geocoding found nothing at %s,%s: %s", latitude, longitude, data["error"])
            return []
        return [self._to_result(data)]

    def _to_result(self, item: dict) -> GeocodeResult:
        address = item.get("address") or {}
        address_type = item.get("addresstype") or item.get("type")
        poi_name = item.get("name") if address_type not in _AREA_TYPES else None
        country_code = address.get("country_code")
        return GeocodeResult(
            latitude=safe_float(item.get("lat")),
            longitude=safe_float(item.get("lon")),
            name=poi_name or None,
            sub_locality=_first(address, _SUB_LOCALITY_KEYS),
            locality=_first(address, _LOCALITY_KEYS),
            administrative_area=_first(address, _ADMINISTRATIVE_KEYS),
            country=address.get("country"),
            country_code=country_code.upper() if country_code else None,
        )


__all__ = ["NominatimGeocoder"]
