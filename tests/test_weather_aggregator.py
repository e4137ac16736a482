from __future__ import annotations

import threading
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from cityweather.cache import SnapshotCache
from cityweather.entities import DailyPoint, PlaceCandidate, ProviderForecast, WeatherPoint
from cityweather.health import HealthRegistry
from cityweather.providers.base import ProviderError
from cityweather.services.weather import WeatherAggregator
from cityweather.storage import Database, SQLiteDailyHistory

# Noon in Shanghai
BASE = datetime(2024, 5, 1, 4, 0, tzinfo=timezone.utc)
SHANGHAI = (31.2304, 121.4737)


class TimeController:
    def __init__(self, now: datetime = BASE) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)

    def __call__(self) -> datetime:
        return self.now


def make_forecast(
    start: datetime = BASE,
    hours: int = 30,
    days: int = 10,
    first_day: date = date(2024, 5, 1),
    temp: float = 20.0,
) -> ProviderForecast:
    current = WeatherPoint(timestamp=start, temperature_c=temp, condition="Clear", symbol_name="sun.max")
    hourly = tuple(
        WeatherPoint(timestamp=start + timedelta(hours=idx), temperature_c=temp + idx) for idx in range(hours)
    )
    daily = tuple(
        DailyPoint(day=first_day + timedelta(days=idx), low_c=temp - 5 + idx, high_c=temp + 5 + idx)
        for idx in range(days)
    )
    return ProviderForecast(current=current, hourly=hourly, daily=daily)


class FakeProvider:
    name = "fake-weather"

    def __init__(self, forecast: Optional[ProviderForecast] = None) -> None:
        self.forecast = forecast or make_forecast()
        self.error: Optional[Exception] = None
        self.failing_latitudes: set = set()
        self.calls: List[Tuple[float, float]] = []
        self.release: Optional[threading.Event] = None
        self.entered = threading.Event()

    def fetch(self, latitude: float, longitude: float) -> ProviderForecast:
        self.calls.append((latitude, longitude))
        self.entered.set()
        if self.release is not None:
            self.release.wait(5)
        if self.error is not None:
            raise self.error
        if latitude in self.failing_latitudes:
            raise ProviderError(f"no data for {latitude}")
        return self.forecast


@pytest.fixture()
def clock() -> TimeController:
    return TimeController()


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def aggregator(provider, clock) -> WeatherAggregator:
    return WeatherAggregator(provider, clock=clock)


def test_get_cached_never_fetches(aggregator, provider) -> None:
    assert aggregator.get_cached("上海市") is None
    assert provider.calls == []


def test_refresh_truncates_hourly_and_daily(aggregator) -> None:
    snapshot = aggregator.refresh("上海市", *SHANGHAI)

    assert len(snapshot.hourly) == 24
    assert [point.timestamp for point in snapshot.hourly] == [BASE + timedelta(hours=idx) for idx in range(24)]
    assert [point.temperature_c for point in snapshot.hourly][:3] == [20.0, 21.0, 22.0]
    assert len(snapshot.daily) == 7
    assert snapshot.daily[0].day == date(2024, 5, 1)
    assert snapshot.fetched_at == BASE
    assert aggregator.get_cached("上海市") is snapshot


def test_refresh_drops_hours_older_than_one_hour(provider, clock) -> None:
    provider.forecast = make_forecast(start=BASE - timedelta(hours=3))
    aggregator = WeatherAggregator(provider, clock=clock)

    snapshot = aggregator.refresh("上海市", *SHANGHAI)

    assert snapshot.hourly[0].timestamp == BASE - timedelta(hours=1)
    assert len(snapshot.hourly) == 24


def test_refresh_sorts_out_of_order_hours(provider, clock) -> None:
    forecast = make_forecast(hours=3)
    provider.forecast = ProviderForecast(
        current=forecast.current,
        hourly=tuple(reversed(forecast.hourly)),
        daily=tuple(reversed(forecast.daily)),
    )
    aggregator = WeatherAggregator(provider, clock=clock)

    snapshot = aggregator.refresh("上海市", *SHANGHAI)

    timestamps = [point.timestamp for point in snapshot.hourly]
    assert timestamps == sorted(timestamps)
    assert [point.day for point in snapshot.daily] == sorted(point.day for point in snapshot.daily)


def test_refresh_derives_timezone(aggregator) -> None:
    snapshot = aggregator.refresh("上海市", *SHANGHAI)

    assert snapshot.timezone_name == "Asia/Shanghai"
    assert snapshot.current.tz is snapshot.tz
    assert all(point.tz is snapshot.tz for point in snapshot.hourly)

    reykjavik = aggregator.refresh("雷克雅未克", 64.1466, -21.9426)
    assert reykjavik.timezone_name == "Atlantic/Reykjavik"


def test_city_key_is_case_insensitive(aggregator, provider) -> None:
    aggregator.refresh("London", 51.5074, -0.1278)

    assert aggregator.get_cached("  london ") is not None
    assert aggregator.get_cached("LONDON").city_key == "london"
    assert len(aggregator.cache) == 1


def test_refresh_rejects_blank_city(aggregator) -> None:
    with pytest.raises(ValueError):
        aggregator.refresh("  ", *SHANGHAI)


def test_failed_refresh_keeps_previous_snapshot(provider, clock) -> None:
    health = HealthRegistry()
    aggregator = WeatherAggregator(provider, clock=clock, health=health)
    first = aggregator.refresh("上海市", *SHANGHAI)

    clock.advance(minutes=30)
    provider.error = ProviderError("HTTP 500")
    with pytest.raises(ProviderError):
        aggregator.refresh("上海市", *SHANGHAI)

    assert aggregator.get_cached("上海市") is first
    assert health.snapshot()["providers"]["fake-weather"]["errors"] == 1


def test_refresh_replaces_snapshot_wholesale(aggregator, provider, clock) -> None:
    first = aggregator.refresh("上海市", *SHANGHAI)
    clock.advance(hours=1)
    provider.forecast = make_forecast(start=clock.now, temp=25.0)

    second = aggregator.refresh("上海市", *SHANGHAI)

    assert second is not first
    assert aggregator.get_cached("上海市") is second
    assert second.current.temperature_c == 25.0
    assert len(provider.calls) == 2


def test_is_stale(aggregator, clock) -> None:
    snapshot = aggregator.refresh("上海市", *SHANGHAI)

    assert not aggregator.is_stale(snapshot, 900)
    clock.advance(seconds=901)
    assert aggregator.is_stale(snapshot, 900)


def test_snapshot_cache_capacity_evicts_least_recent(provider, clock) -> None:
    aggregator = WeatherAggregator(provider, cache=SnapshotCache(2), clock=clock)

    aggregator.refresh("上海市", *SHANGHAI)
    aggregator.refresh("北京市", 39.9042, 116.4074)
    aggregator.get_cached("上海市")
    aggregator.refresh("广州市", 23.1291, 113.2644)

    assert aggregator.get_cached("北京市") is None
    assert aggregator.get_cached("上海市") is not None
    assert aggregator.get_cached("广州市") is not None


def test_refresh_locks_are_bounded_by_the_cache(provider, clock) -> None:
    aggregator = WeatherAggregator(provider, cache=SnapshotCache(2), clock=clock)

    for idx in range(50):
        aggregator.refresh(f"city-{idx}", *SHANGHAI)
    provider.error = ProviderError("HTTP 500")
    with pytest.raises(ProviderError):
        aggregator.refresh("never-cached", *SHANGHAI)

    assert len(aggregator.cache) == 2
    assert set(aggregator._key_locks) == {"city-48", "city-49"}
    assert set(aggregator._generations) == {"city-48", "city-49"}
    assert aggregator._lock_users == {}


def test_yesterday_comes_from_recorded_history(provider, clock) -> None:
    history = SQLiteDailyHistory(Database(":memory:"))
    aggregator = WeatherAggregator(provider, history=history, clock=clock)

    assert aggregator.get_yesterday("上海市") is None

    aggregator.refresh("上海市", *SHANGHAI)
    clock.advance(days=1)

    yesterday = aggregator.get_yesterday("上海市")
    assert yesterday is not None
    assert yesterday.day == date(2024, 5, 1)
    assert yesterday.high_c == 25.0
    assert aggregator.get_yesterday("上海市", today=date(2024, 5, 3)) is None


def test_yesterday_uses_local_date_when_nothing_is_cached(provider) -> None:
    history = SQLiteDailyHistory(Database(":memory:"))
    history.record("上海市", DailyPoint(day=date(2024, 4, 30), low_c=10.0, high_c=20.0))
    history.record("上海市", DailyPoint(day=date(2024, 5, 1), low_c=12.0, high_c=22.0))
    # 01:00 on 2 May in Shanghai, still 1 May in UTC
    clock = TimeController(datetime(2024, 5, 1, 17, 0, tzinfo=timezone.utc))
    aggregator = WeatherAggregator(provider, history=history, clock=clock)

    yesterday = aggregator.get_yesterday("上海市", latitude=SHANGHAI[0], longitude=SHANGHAI[1])

    assert yesterday.day == date(2024, 5, 1)
    assert aggregator.get_yesterday("上海市").day == date(2024, 4, 30)
    assert provider.calls == []


def test_later_refresh_of_the_same_day_wins(aggregator, provider, clock) -> None:
    aggregator.refresh("上海市", *SHANGHAI)
    clock.advance(hours=2)
    provider.forecast = make_forecast(start=clock.now, temp=10.0)
    aggregator.refresh("上海市", *SHANGHAI)

    recorded = aggregator.history.get("上海市", date(2024, 5, 1))
    assert recorded.high_c == 15.0


def test_compare_days(aggregator, provider, clock) -> None:
    aggregator.refresh("上海市", *SHANGHAI)
    clock.advance(days=1)
    provider.forecast = make_forecast(start=clock.now, first_day=date(2024, 5, 2), temp=22.0)
    aggregator.refresh("上海市", *SHANGHAI)

    comparison = aggregator.compare_days("上海市")

    assert comparison.yesterday.day == date(2024, 5, 1)
    assert comparison.today.day == date(2024, 5, 2)
    assert comparison.tomorrow.day == date(2024, 5, 3)


def test_compare_days_allows_partial_data(aggregator) -> None:
    comparison = aggregator.compare_days("上海市")

    assert comparison.yesterday is None
    assert comparison.today is None
    assert comparison.tomorrow is None


def test_refresh_many_isolates_failures(aggregator, provider) -> None:
    provider.failing_latitudes = {39.9042}
    places = [
        PlaceCandidate(name="上海市", latitude=31.2304, longitude=121.4737),
        PlaceCandidate(name="北京市", latitude=39.9042, longitude=116.4074),
        PlaceCandidate(name="广州市", latitude=23.1291, longitude=113.2644),
    ]

    futures = aggregator.refresh_many(places)
    results = [future.result(timeout=5) for future in futures]

    assert results[1] is None
    assert results[0] is not None and results[2] is not None
    assert aggregator.get_cached("上海市") is not None
    assert aggregator.get_cached("北京市") is None
    assert aggregator.get_cached("广州市") is not None


class _ObservedAggregator(WeatherAggregator):
    """Signals once the second caller has registered for the key's lock."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.second_waiting = threading.Event()

    def _lock_for(self, key):
        result = super()._lock_for(key)
        if threading.current_thread().name == "second-refresh":
            self.second_waiting.set()
        return result


def test_same_city_refreshes_are_coalesced(provider, clock) -> None:
    provider.release = threading.Event()
    aggregator = _ObservedAggregator(provider, clock=clock)
    results = {}

    def run(label: str) -> None:
        results[label] = aggregator.refresh("上海市", *SHANGHAI)

    first = threading.Thread(target=run, args=("first",), name="first-refresh")
    second = threading.Thread(target=run, args=("second",), name="second-refresh")
    first.start()
    assert provider.entered.wait(5)
    second.start()
    assert aggregator.second_waiting.wait(5)
    provider.release.set()
    first.join(5)
    second.join(5)

    assert len(provider.calls) == 1
    assert results["first"] is results["second"]
