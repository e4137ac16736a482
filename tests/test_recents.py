from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from cityweather.entities import PlaceCandidate
from cityweather.services.recents import RecentSelectionsStore
from cityweather.storage import Database, InMemoryKeyValueStore, SQLiteKeyValueStore

SHANGHAI = PlaceCandidate(name="上海市", latitude=31.2304, longitude=121.4737)
BEIJING = PlaceCandidate(name="北京市", latitude=39.9042, longitude=116.4074)
HANGZHOU = PlaceCandidate(name="杭州市", latitude=30.2741, longitude=120.1551)


def names(store: RecentSelectionsStore):
    return [item.name for item in store.list()]


def test_add_puts_newest_first() -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore())

    store.add(SHANGHAI)
    store.add(BEIJING)

    assert names(store) == ["北京市", "上海市"]


def test_add_is_idempotent_by_name_and_moves_to_front() -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore())
    first = store.add(SHANGHAI)
    store.add(BEIJING)

    again = store.add(PlaceCandidate(name="上海市", latitude=0.0, longitude=0.0))

    assert names(store) == ["上海市", "北京市"]
    assert again.id == first.id
    assert again.latitude == 31.2304


def test_capacity_evicts_the_oldest() -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore(), capacity=2)

    store.add(SHANGHAI)
    store.add(BEIJING)
    store.add(HANGZHOU)

    assert names(store) == ["杭州市", "北京市"]


def test_remove() -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore())
    store.add(SHANGHAI)
    store.add(BEIJING)

    assert store.remove("上海市") is True
    assert store.remove("上海市") is False
    assert names(store) == ["北京市"]


def test_reorder() -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore())
    for place in (SHANGHAI, BEIJING, HANGZHOU):
        store.add(place)
    assert names(store) == ["杭州市", "北京市", "上海市"]

    store.reorder(0, 2)

    assert names(store) == ["北京市", "上海市", "杭州市"]


@pytest.mark.parametrize("from_index,to_index", [(-1, 0), (0, 2), (2, 0), (5, 5)])
def test_reorder_out_of_range_raises(from_index: int, to_index: int) -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore())
    store.add(SHANGHAI)
    store.add(BEIJING)

    with pytest.raises(IndexError):
        store.reorder(from_index, to_index)
    assert names(store) == ["北京市", "上海市"]


def test_mutations_write_through() -> None:
    storage = InMemoryKeyValueStore()
    added_at = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
    store = RecentSelectionsStore(storage, clock=lambda: added_at)

    selection = store.add(SHANGHAI)

    payload = json.loads(storage.get("recent_selections").decode("utf-8"))
    assert payload == [
        {
            "id": str(selection.id),
            "name": "上海市",
            "lat": 31.2304,
            "lon": 121.4737,
            "added_at": "2024-05-01T08:30:00+00:00",
        }
    ]


def test_list_survives_restart_with_sqlite() -> None:
    database = Database(":memory:")
    store = RecentSelectionsStore(SQLiteKeyValueStore(database))
    store.add(SHANGHAI)
    store.add(BEIJING)
    store.reorder(0, 1)

    reloaded = RecentSelectionsStore(SQLiteKeyValueStore(database))

    assert names(reloaded) == ["上海市", "北京市"]
    assert [item.id for item in reloaded.list()] == [item.id for item in store.list()]


@pytest.mark.parametrize(
    "raw",
    [
        b"not json",
        '{"name": "上海市"}'.encode("utf-8"),
        json.dumps([{"name": "上海市"}]).encode("utf-8"),
        b"\xff\xfe",
    ],
)
def test_malformed_storage_yields_empty_list(raw: bytes) -> None:
    store = RecentSelectionsStore(InMemoryKeyValueStore({"recent_selections": raw}))

    assert store.list() == []
    store.add(SHANGHAI)
    assert names(store) == ["上海市"]


def test_missing_storage_yields_empty_list() -> None:
    assert RecentSelectionsStore(InMemoryKeyValueStore()).list() == []


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        RecentSelectionsStore(InMemoryKeyValueStore(), capacity=0)
