from .base import HTTPProvider, ProviderError, QuotaExceeded, RequestConfig
from .nominatim import NominatimGeocoder
from .openmeteo import OpenMeteoProvider

__all__ = [
    "HTTPProvider",
    "NominatimGeocoder",
    "OpenMeteoProvider",
    "ProviderError",
    "QuotaExceeded",
    "RequestConfig",
]
