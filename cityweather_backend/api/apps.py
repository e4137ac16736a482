from __future__ import annotations

from django.apps import AppConfig


class ApiConfig(AppConfig):
    name = "cityweather_backend.api"
    label = "cityweather_api"
