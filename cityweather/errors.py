"""Error taxonomy shared by the services and the API layer.

Every error carries a stable ``code`` that the API returns verbatim, and the
HTTP status it maps to.
"""
from __future__ import annotations


class CityWeatherError(Exception):
    code = "unknown"
    http_status = 500

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code

    def as_dict(self) -> dict:
        return {"code": self.code, "detail": self.detail}


class PermissionDenied(CityWeatherError):
    """The caller is not authorized to use location services."""

    code = "permission_denied"
    http_status = 403


class Timeout(CityWeatherError):
    code = "timeout"
    http_status = 504


class RequestCancelled(CityWeatherError):
    code = "request_cancelled"
    http_status = 409


class ProviderUnavailable(CityWeatherError):
    """A geocoding or weather provider could not serve the request."""

    code = "provider_unavailable"
    http_status = 502


class NotFound(CityWeatherError):
    code = "not_found"
    http_status = 404


class UnknownError(CityWeatherError):
    code = "unknown"
    http_status = 500


__all__ = [
    "CityWeatherError",
    "NotFound",
    "PermissionDenied",
    "ProviderUnavailable",
    "RequestCancelled",
    "Timeout",
    "UnknownError",
]
