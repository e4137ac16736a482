"""
Tunable constants for the core services.

The Django settings module reads environment overrides for the values that
matter in deployment; everything here is the library default.
"""

# Place matching
HOT_CITY_COUNT: int = 8
SEARCH_RESULT_LIMIT: int = 20
SEARCH_TIMEOUT_SECONDS: float = 3.0
SEARCH_CACHE_TTL_SECONDS: int = 10 * 60

# ISO 3166 code of the "domestic" country for geocoder naming rules
HOME_COUNTRY_CODE: str = "CN"

# Administrative suffixes that mark a domestic name as already qualified
ADMINISTRATIVE_SUFFIXES: tuple[str, ...] = (
    "市", "区", "县", "省", "镇", "乡", "旗", "盟", "街道", "地区", "自治州",
)

# Location resolution
RESOLVE_TIMEOUT_SECONDS: float = 10.0
COORDINATE_PRECISION: int = 3
RESOLVED_NAME_TTL_SECONDS: int = 24 * 60 * 60
DEFAULT_CITY: tuple[str, float, float] = ("上海市", 31.2304, 121.4737)

# Weather aggregation
HOURLY_LIMIT: int = 24
DAILY_LIMIT: int = 7
HOURLY_EPSILON_SECONDS: int = 60 * 60
SNAPSHOT_CAPACITY: int = 256
WEATHER_MAX_AGE_SECONDS: int = 15 * 60

# Recent selections
RECENTS_STORAGE_KEY: str = "recent_selections"

# Timezone derivation: (lat_min, lat_max, lon_min, lon_max) -> IANA zone
TIMEZONE_OVERRIDES: tuple[tuple[tuple[float, float, float, float], str], ...] = (
    ((63.0, 67.0, -25.0, -13.0), "Atlantic/Reykjavik"),
)

# Zones considered when upgrading the longitude offset to a named zone,
# in order of preference for equal offsets.
PREFERRED_TIMEZONES: tuple[str, ...] = (
    "Asia/Shanghai",
    "Asia/Tokyo",
    "Asia/Seoul",
    "Asia/Singapore",
    "Asia/Bangkok",
    "Asia/Kolkata",
    "Asia/Dubai",
    "Europe/Moscow",
    "Europe/Istanbul",
    "Europe/Berlin",
    "Europe/Paris",
    "Europe/London",
    "Atlantic/Azores",
    "America/Sao_Paulo",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Anchorage",
    "Pacific/Honolulu",
    "Australia/Sydney",
    "Australia/Brisbane",
    "Pacific/Auckland",
)
