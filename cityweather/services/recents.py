from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import UUID

from .. import config
from ..entities import PlaceCandidate, RecentSelection
from ..storage import KeyValueStore


logger = logging.getLogger(__name__)


def _encode(selections: List[RecentSelection]) -> bytes:
    payload = [
        {
            "id": str(selection.id),
            "name": selection.name,
            "lat": selection.latitude,
            "lon": selection.longitude,
            "added_at": selection.added_at.isoformat(),
        }
        for selection in selections
    ]
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def _decode(raw: bytes) -> List[RecentSelection]:
    payload = json.loads(raw.decode("utf-8"))
    if not isinstance(payload, list):
        raise ValueError("recent selections must be a JSON list")
    selections: List[RecentSelection] = []
    seen = set()
    for item in payload:
        added_at = item.get("added_at")
        selection = RecentSelection(
            id=UUID(item["id"]),
            name=item["name"],
            latitude=float(item["lat"]),
            longitude=float(item["lon"]),
            added_at=datetime.fromisoformat(added_at) if added_at else datetime.now(timezone.utc),
        )
        if selection.name in seen:
            continue
        seen.add(selection.name)
        selections.append(selection)
    return selections


class RecentSelectionsStore:
    """Ordered (most recent first) list of selected places, unique by name.

    Every mutation writes the whole list through to the key-value store. The
    list is read from storage once, at construction.
    """

    def __init__(
        self,
        storage: KeyValueStore,
        *,
        capacity: Optional[int] = None,
        key: str = config.RECENTS_STORAGE_KEY,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        if capacity is not None and capacity <= 0:
            raise ValueError("capacity must be positive")
        self._storage = storage
        self._capacity = capacity
        self._key = key
        self._clock = clock
        self._lock = threading.Lock()
        self._items: List[RecentSelection] = self._load()

    def list(self) -> List[RecentSelection]:
        with self._lock:
            return list(self._items)

    def add(self, place: PlaceCandidate) -> RecentSelection:
        with self._lock:
            existing = next((item for item in self._items if item.name == place.name), None)
            if existing is not None:
                self._items.remove(existing)
                selection = existing
            else:
                selection = RecentSelection(
                    name=place.name,
                    latitude=place.latitude,
                    longitude=place.longitude,
                    added_at=self._clock(),
                )
            self._items.insert(0, selection)
            if self._capacity is not None:
                del self._items[self._capacity :]
            self._persist()
            return selection

    def remove(self, name: str) -> bool:
        with self._lock:
            for index, item in enumerate(self._items):
                if item.name == name:
                    del self._items[index]
                    self._persist()
                    return True
            return False

    def reorder(self, from_index: int, to_index: int) -> None:
        with self._lock:
            size = len(self._items)
            if not (0 <= from_index < size and 0 <= to_index < size):
                raise IndexError(f"reorder indices out of range for {size} selections")
            item = self._items.pop(from_index)
            self._items.insert(to_index, item)
            self._persist()

    # Helpers ------------------------------------------------------------
    def _load(self) -> List[RecentSelection]:
        raw = self._storage.get(self._key)
        if not raw:
            return []
        try:
            items = _decode(raw)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("Ignoring malformed recent selections: %s", exc)
            return []
        if self._capacity is not None:
            items = items[: self._capacity]
        return items

    def _persist(self) -> None:
        self._storage.set(self._key, _encode(self._items))


__all__ = ["RecentSelectionsStore"]
