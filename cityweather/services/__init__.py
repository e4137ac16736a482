from .locations import LocationResolver, ResolverOutcome, ResolverState
from .places import PlaceMatcher
from .recents import RecentSelectionsStore
from .weather import WeatherAggregator

__all__ = [
    "LocationResolver",
    "PlaceMatcher",
    "RecentSelectionsStore",
    "ResolverOutcome",
    "ResolverState",
    "WeatherAggregator",
]
