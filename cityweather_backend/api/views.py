"""REST API views for place search, location resolution, weather and recents."""
from __future__ import annotations

import logging
from typing import Any, Optional, Tuple

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from cityweather.entities import PlaceCandidate
from cityweather.errors import CityWeatherError, NotFound
from cityweather.gazetteer import find_entry
from cityweather.providers.base import ProviderError

from .serializers import (
    serialize_comparison,
    serialize_daily,
    serialize_places,
    serialize_recent,
    serialize_snapshot,
)
from .services import get_container

logger = logging.getLogger(__name__)


class InvalidParameters(ValueError):
    pass


def _bad_request(detail: str) -> Response:
    return Response({"code": "invalid_request", "detail": detail}, status=status.HTTP_400_BAD_REQUEST)


def _error_response(exc: CityWeatherError) -> Response:
    return Response(exc.as_dict(), status=exc.http_status)


def _parse_coordinate(raw_value: Any, name: str) -> float:
    if raw_value is None or raw_value == "":
        raise InvalidParameters(f"Missing {name}")
    try:
        value = float(raw_value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameters(f"{name} must be a valid floating point number") from exc
    if name == "lat" and not -90.0 <= value <= 90.0:
        raise InvalidParameters("Latitude must be between -90 and 90")
    if name == "lon" and not -180.0 <= value <= 180.0:
        raise InvalidParameters("Longitude must be between -180 and 180")
    return value


def _coordinates(params: Any) -> Tuple[float, float]:
    return _parse_coordinate(params.get("lat"), "lat"), _parse_coordinate(params.get("lon"), "lon")


def _place_for(city: str, params: Any) -> PlaceCandidate:
    """Coordinates from the query string, else from the gazetteer or the recents."""
    if params.get("lat") is not None or params.get("lon") is not None:
        latitude, longitude = _coordinates(params)
        return PlaceCandidate(name=city, latitude=latitude, longitude=longitude)
    entry = find_entry(city)
    if entry is not None:
        return PlaceCandidate(name=city, latitude=entry.place.latitude, longitude=entry.place.longitude)
    for selection in get_container().recents.list():
        if selection.name == city:
            return PlaceCandidate(name=city, latitude=selection.latitude, longitude=selection.longitude)
    raise NotFound(f"No coordinates known for {city}; pass lat and lon")


class SearchView(APIView):
    """Search the gazetteer and the geocoder."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        query = request.query_params.get("q", "")
        results = get_container().matcher.search(query)
        return Response({"query": query, "results": serialize_places(results)}, status=status.HTTP_200_OK)


class HotCitiesView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        return Response({"results": serialize_places(get_container().matcher.hot_cities())})


class ResolveView(APIView):
    """Resolve device coordinates to a city name."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        try:
            latitude, longitude = _coordinates(request.query_params)
        except InvalidParameters as exc:
            return _bad_request(str(exc))

        resolver = get_container().new_resolver()
        try:
            name = resolver.resolve(latitude, longitude)
        except CityWeatherError as exc:
            logger.info("Resolve of %s,%s ended with %s", latitude, longitude, exc.code)
            return _error_response(exc)
        finally:
            resolver.cleanup()
        return Response(
            {"name": name, "latitude": latitude, "longitude": longitude, "outcome": resolver.last_outcome.value},
            status=status.HTTP_200_OK,
        )


class WeatherView(APIView):
    """Return the cached snapshot for a city, refreshing it when missing or too old."""

    permission_classes = [AllowAny]

    def get(self, request, city: str, *args, **kwargs):  # noqa: D401
        container = get_container()
        try:
            place = _place_for(city, request.query_params)
        except InvalidParameters as exc:
            return _bad_request(str(exc))
        except CityWeatherError as exc:
            return _error_response(exc)

        aggregator = container.aggregator
        snapshot = aggregator.get_cached(place.name)
        stale = False
        if snapshot is None or aggregator.is_stale(snapshot, container.weather_max_age):
            try:
                snapshot = aggregator.refresh(place.name, place.latitude, place.longitude)
            except ProviderError as exc:
                if snapshot is None:
                    return _error_response(exc)
                logger.warning("Serving stale weather for %s: %s", place.name, exc)
                stale = True

        payload = serialize_snapshot(
            place.name,
            snapshot,
            yesterday=aggregator.get_yesterday(place.name, latitude=place.latitude, longitude=place.longitude),
            stale=stale,
        )
        return Response(payload, status=status.HTTP_200_OK)


def _known_coordinates(city: str, params: Any) -> Tuple[Optional[float], Optional[float]]:
    """Coordinates for the city's local date, or ``(None, None)`` when none are known."""
    try:
        place = _place_for(city, params)
    except NotFound:
        return None, None
    return place.latitude, place.longitude


class YesterdayView(APIView):
    """Serve the recorded forecast for the city's local yesterday."""

    permission_classes = [AllowAny]

    def get(self, request, city: str, *args, **kwargs):  # noqa: D401
        try:
            latitude, longitude = _known_coordinates(city, request.query_params)
        except InvalidParameters as exc:
            return _bad_request(str(exc))
        point = get_container().aggregator.get_yesterday(city, latitude=latitude, longitude=longitude)
        if point is None:
            return _error_response(NotFound(f"No recorded history for {city}"))
        return Response({"city": city, "yesterday": serialize_daily(point)}, status=status.HTTP_200_OK)


class CompareDaysView(APIView):
    """Yesterday, today and tomorrow side by side; missing days are null."""

    permission_classes = [AllowAny]

    def get(self, request, city: str, *args, **kwargs):  # noqa: D401
        try:
            latitude, longitude = _known_coordinates(city, request.query_params)
        except InvalidParameters as exc:
            return _bad_request(str(exc))
        comparison = get_container().aggregator.compare_days(city, latitude=latitude, longitude=longitude)
        return Response({"city": city, **serialize_comparison(comparison)}, status=status.HTTP_200_OK)


class RecentsView(APIView):
    """List recent selections, or add one."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        selections = get_container().recents.list()
        return Response({"results": [serialize_recent(item) for item in selections]})

    def post(self, request, *args, **kwargs):  # noqa: D401
        data = request.data if isinstance(request.data, dict) else {}
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            return _bad_request("name is required")
        try:
            latitude, longitude = _coordinates(data)
        except InvalidParameters as exc:
            return _bad_request(str(exc))
        place = PlaceCandidate(name=name.strip(), latitude=latitude, longitude=longitude)
        selection = get_container().recents.add(place)
        return Response(serialize_recent(selection), status=status.HTTP_201_CREATED)


class RecentDetailView(APIView):
    permission_classes = [AllowAny]

    def delete(self, request, name: str, *args, **kwargs):  # noqa: D401
        if not get_container().recents.remove(name):
            return _error_response(NotFound(f"{name} is not a recent selection"))
        return Response(status=status.HTTP_204_NO_CONTENT)


class RecentsReorderView(APIView):
    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):  # noqa: D401
        data = request.data if isinstance(request.data, dict) else {}
        from_index = _as_index(data.get("from"))
        to_index = _as_index(data.get("to"))
        if from_index is None or to_index is None:
            return _bad_request("from and to must be integer indices")
        recents = get_container().recents
        try:
            recents.reorder(from_index, to_index)
        except IndexError as exc:
            return _bad_request(str(exc))
        return Response({"results": [serialize_recent(item) for item in recents.list()]})


class AdminHealthView(APIView):
    """Serve health information for the admin UI."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        return Response(get_container().health.snapshot(), status=status.HTTP_200_OK)


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


__all__ = [
    "AdminHealthView",
    "CompareDaysView",
    "HotCitiesView",
    "RecentDetailView",
    "RecentsReorderView",
    "RecentsView",
    "ResolveView",
    "SearchView",
    "WeatherView",
    "YesterdayView",
]
