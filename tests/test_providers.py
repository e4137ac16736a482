from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
import requests
import responses

from cityweather.providers.base import ProviderError, QuotaExceeded, RequestConfig
from cityweather.providers.nominatim import NominatimGeocoder
from cityweather.providers.openmeteo import OpenMeteoProvider, describe_weather_code

OPENMETEO_URL = "https://openmeteo.test/v1/forecast"
NOMINATIM_URL = "https://nominatim.test"


def openmeteo_payload() -> dict:
    return {
        "latitude": 31.25,
        "longitude": 121.5,
        "utc_offset_seconds": 28800,
        "timezone": "Asia/Shanghai",
        "current": {
            "time": "2024-05-01T12:15",
            "temperature_2m": 22.4,
            "apparent_temperature": 23.1,
            "relative_humidity_2m": 61,
            "weather_code": 3,
            "wind_speed_10m": 3.2,
            "pressure_msl": 1012.5,
            "is_day": 1,
        },
        "hourly": {
            "time": ["2024-05-01T12:00", "2024-05-01T13:00"],
            "temperature_2m": [22.0, 23.0],
            "apparent_temperature": [22.5, 23.4],
            "relative_humidity_2m": [60, 58],
            "weather_code": [3, 61],
            "wind_speed_10m": [3.0, 3.5],
            "pressure_msl": [1012.0, 1011.6],
            "is_day": [1, 1],
            "precipitation_probability": [20, 65],
            "uv_index": [5.1, 4.2],
            "visibility": [24140.0, 18000.0],
        },
        "daily": {
            "time": ["2024-05-01", "2024-05-02"],
            "weather_code": [3, 61],
            "temperature_2m_max": [25.0, 21.0],
            "temperature_2m_min": [17.0, 16.0],
            "precipitation_probability_max": [20, 80],
        },
    }


def test_openmeteo_normalization(requests_mock):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    requests_mock.get(OPENMETEO_URL, json=openmeteo_payload())

    forecast = provider.fetch(31.2304, 121.4737)

    current = forecast.current
    assert current.timestamp == datetime(2024, 5, 1, 4, 15, tzinfo=timezone.utc)
    assert current.temperature_c == 22.4
    assert current.feels_like_c == 23.1
    assert (current.condition, current.symbol_name) == ("Cloudy", "cloud")
    assert current.precipitation_chance == 20
    assert current.uv_index == 5.1
    assert current.visibility_km == pytest.approx(24.14)
    assert current.is_day is True

    assert [point.timestamp.hour for point in forecast.hourly] == [4, 5]
    assert forecast.hourly[1].condition == "Light Rain"
    assert forecast.hourly[1].precipitation_chance == 65
    assert [point.day for point in forecast.daily] == [date(2024, 5, 1), date(2024, 5, 2)]
    assert forecast.daily[1].low_c == 16.0
    assert forecast.daily[1].precipitation_chance == 80

    query = requests_mock.last_request.qs
    assert query["timezone"] == ["auto"]
    assert query["wind_speed_unit"] == ["ms"]
    assert "precipitation_probability" in query["hourly"][0]


def test_openmeteo_sends_user_agent(requests_mock):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL, request_config=RequestConfig(user_agent="tests/0.1"))
    requests_mock.get(OPENMETEO_URL, json=openmeteo_payload())

    provider.fetch(31.2304, 121.4737)

    assert requests_mock.last_request.headers["User-Agent"] == "tests/0.1"


def test_openmeteo_http_error(requests_mock):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    requests_mock.get(OPENMETEO_URL, status_code=502, text="bad gateway")

    with pytest.raises(ProviderError):
        provider.fetch(31.2, 121.4)


def test_openmeteo_quota(requests_mock):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    requests_mock.get(OPENMETEO_URL, status_code=429, text="quota exceeded")

    with pytest.raises(QuotaExceeded):
        provider.fetch(31.2, 121.4)


def test_openmeteo_timeout(requests_mock):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    requests_mock.get(OPENMETEO_URL, exc=requests.exceptions.ConnectTimeout)

    with pytest.raises(ProviderError, match="timeout"):
        provider.fetch(31.2, 121.4)
    assert requests_mock.call_count == 1


@pytest.mark.parametrize("missing", ["current", "hourly", "daily"])
def test_openmeteo_incomplete_payload(requests_mock, missing):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    payload = openmeteo_payload()
    del payload[missing]
    requests_mock.get(OPENMETEO_URL, json=payload)

    with pytest.raises(ProviderError):
        provider.fetch(31.2, 121.4)


@pytest.mark.parametrize(
    "section,field,value",
    [
        ("current", "time", "not-a-time"),
        ("current", "time", 1714536000),
        ("current", "time", None),
        ("hourly", "time", ["2024-05-01T12:00", "yesterday"]),
        ("daily", "time", ["2024-05-01", "2024-13-45"]),
        (None, "utc_offset_seconds", "eight hours"),
    ],
)
def test_openmeteo_malformed_times(requests_mock, section, field, value):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    payload = openmeteo_payload()
    target = payload[section] if section else payload
    target[field] = value
    requests_mock.get(OPENMETEO_URL, json=payload)

    with pytest.raises(ProviderError):
        provider.fetch(31.2, 121.4)


def test_openmeteo_invalid_json(requests_mock):
    provider = OpenMeteoProvider(base_url=OPENMETEO_URL)
    requests_mock.get(OPENMETEO_URL, text="<html>")

    with pytest.raises(ProviderError):
        provider.fetch(31.2, 121.4)


def test_describe_weather_code():
    assert describe_weather_code(0) == ("Clear", "sun.max")
    assert describe_weather_code(95.0) == ("Thunderstorm", "cloud.bolt.rain")
    assert describe_weather_code(None) == ("Unknown", "questionmark")
    assert describe_weather_code(42) == ("Unknown", "questionmark")


def test_nominatim_search():
    geocoder = NominatimGeocoder(base_url=NOMINATIM_URL)

    with responses.RequestsMock() as rsps:
        rsps.add(
            "GET",
            f"{NOMINATIM_URL}/search",
            json=[
                {
                    "lat": "31.2397",
                    "lon": "121.4998",
                    "name": "东方明珠",
                    "addresstype": "tourism",
                    "address": {
                        "tourism": "东方明珠",
                        "suburb": "陆家嘴街道",
                        "city": "上海市",
                        "country": "中国",
                        "country_code": "cn",
                    },
                },
                {
                    "lat": "48.8566",
                    "lon": "2.3522",
                    "name": "Paris",
                    "addresstype": "city",
                    "address": {"city": "Paris", "state": "Île-de-France", "country": "France", "country_code": "fr"},
                },
            ],
            status=200,
        )
        results = geocoder.search("东方明珠")
        assert len(rsps.calls) == 1
        assert "format=jsonv2" in rsps.calls[0].request.url

    tower, paris = results
    assert tower.name == "东方明珠"
    assert tower.sub_locality == "陆家嘴街道"
    assert tower.locality == "上海市"
    assert tower.country_code == "CN"
    assert tower.latitude == pytest.approx(31.2397)
    assert paris.name is None
    assert paris.locality == "Paris"
    assert paris.administrative_area == "Île-de-France"
    assert paris.country == "France"


def test_nominatim_reverse():
    geocoder = NominatimGeocoder(base_url=NOMINATIM_URL)

    with responses.RequestsMock() as rsps:
        rsps.add(
            "GET",
            f"{NOMINATIM_URL}/reverse",
            json={
                "lat": "31.2304",
                "lon": "121.4737",
                "name": "黄浦区",
                "addresstype": "city_district",
                "address": {
                    "city_district": "黄浦区",
                    "city": "上海市",
                    "country": "中国",
                    "country_code": "cn",
                },
            },
            status=200,
        )
        results = geocoder.reverse(31.2304, 121.4737)

    assert len(results) == 1
    assert results[0].name is None
    assert results[0].sub_locality == "黄浦区"
    assert results[0].locality == "上海市"


def test_nominatim_reverse_nothing_found():
    geocoder = NominatimGeocoder(base_url=NOMINATIM_URL)

    with responses.RequestsMock() as rsps:
        rsps.add("GET", f"{NOMINATIM_URL}/reverse", json={"error": "Unable to geocode"}, status=200)
        assert geocoder.reverse(0.0, -160.0) == []


def test_nominatim_http_error():
    geocoder = NominatimGeocoder(base_url=NOMINATIM_URL)

    with responses.RequestsMock() as rsps:
        rsps.add("GET", f"{NOMINATIM_URL}/search", json={"error": "overload"}, status=503)
        with pytest.raises(ProviderError):
            geocoder.search("上海")


def test_nominatim_unexpected_payload():
    geocoder = NominatimGeocoder(base_url=NOMINATIM_URL)

    with responses.RequestsMock() as rsps:
        rsps.add("GET", f"{NOMINATIM_URL}/search", json={"unexpected": True}, status=200)
        with pytest.raises(ProviderError):
            geocoder.search("上海")
