"""Django settings for the city weather service."""
from __future__ import annotations

from pathlib import Path
import os
from datetime import timezone

from django.core.exceptions import ImproperlyConfigured

BASE_DIR = Path(__file__).resolve().parent.parent


def env(name: str, default: str | None = None) -> str:
    """Fetch environment variables while allowing explicit defaults."""

    value = os.environ.get(name, default)
    if value is None:
        raise ImproperlyConfigured(f"Environment variable {name} is required")
    return value


def env_float(name: str, default: float) -> float:
    raw = env(name, str(default))
    try:
        return float(raw)
    except ValueError as exc:
        raise ImproperlyConfigured(f"Environment variable {name} must be a number, got {raw!r}") from exc


def env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ImproperlyConfigured(f"Environment variable {name} must be an integer, got {raw!r}") from exc


SECRET_KEY = env("DJANGO_SECRET_KEY")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "rest_framework",
    "cityweather_backend.api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "cityweather_backend.urls"

WSGI_APPLICATION = "cityweather_backend.wsgi.application"

REDIS_URL = os.environ.get("REDIS_URL")
if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "cityweather-local",
        }
    }

CITYWEATHER_CACHE_ALIAS = os.environ.get("CITYWEATHER_CACHE_ALIAS", "default")
# Day history and recent selections; ":memory:" keeps them for the process lifetime only
CITYWEATHER_DB_PATH = os.environ.get("CITYWEATHER_DB_PATH", str(BASE_DIR / "cityweather.sqlite3"))
CITYWEATHER_HOME_COUNTRY = os.environ.get("CITYWEATHER_HOME_COUNTRY", "CN")
CITYWEATHER_RESOLVE_TIMEOUT = env_float("CITYWEATHER_RESOLVE_TIMEOUT", 10.0)
CITYWEATHER_SEARCH_TIMEOUT = env_float("CITYWEATHER_SEARCH_TIMEOUT", 3.0)
CITYWEATHER_WEATHER_MAX_AGE = env_float("CITYWEATHER_WEATHER_MAX_AGE", 900.0)
CITYWEATHER_SNAPSHOT_CAPACITY = env_int("CITYWEATHER_SNAPSHOT_CAPACITY", 256)
CITYWEATHER_RECENTS_CAPACITY = env_int("CITYWEATHER_RECENTS_CAPACITY", None)
CITYWEATHER_NOMINATIM_URL = os.environ.get("CITYWEATHER_NOMINATIM_URL", "https://nominatim.openstreetmap.org")
CITYWEATHER_OPENMETEO_URL = os.environ.get("CITYWEATHER_OPENMETEO_URL", "https://api.open-meteo.com/v1/forecast")
CITYWEATHER_USER_AGENT = os.environ.get("CITYWEATHER_USER_AGENT", "cityweather/1.0")
CITYWEATHER_HTTP_TIMEOUT = env_float("CITYWEATHER_HTTP_TIMEOUT", 5.0)

REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_PARSER_CLASSES": [
        "rest_framework.parsers.JSONParser",
    ],
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "UNAUTHENTICATED_USER": None,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("CITYWEATHER_LOG_LEVEL", "INFO").upper(),
    },
}

TIME_ZONE = "UTC"
USE_TZ = True
DEFAULT_TIMEZONE = timezone.utc
