"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from cityweather_backend.api.views import (
    AdminHealthView,
    CompareDaysView,
    HotCitiesView,
    RecentDetailView,
    RecentsReorderView,
    RecentsView,
    ResolveView,
    SearchView,
    WeatherView,
    YesterdayView,
)

urlpatterns = [
    path("search", SearchView.as_view(), name="search"),
    path("hot-cities", HotCitiesView.as_view(), name="hot-cities"),
    path("resolve", ResolveView.as_view(), name="resolve"),
    path("weather/<str:city>/yesterday", YesterdayView.as_view(), name="weather-yesterday"),
    path("weather/<str:city>/compare", CompareDaysView.as_view(), name="weather-compare"),
    path("weather/<str:city>", WeatherView.as_view(), name="weather"),
    path("recents", RecentsView.as_view(), name="recents"),
    path("recents/reorder", RecentsReorderView.as_view(), name="recents-reorder"),
    path("recents/<str:name>", RecentDetailView.as_view(), name="recent-detail"),
    path("admin/health", AdminHealthView.as_view(), name="admin-health"),
]
