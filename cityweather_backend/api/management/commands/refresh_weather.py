"""Management command to refresh weather using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any, Dict, List

from django.core.management.base import BaseCommand, CommandError

from cityweather.entities import PlaceCandidate
from cityweather.gazetteer import find_entry
from cityweather_backend.api.services import get_container


class Command(BaseCommand):
    help = "Refresh weather for gazetteer cities and/or the recent selections"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--city", action="append", default=[], help="City name (repeatable)")
        parser.add_argument("--recents", action="store_true", help="Also refresh every recent selection")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        container = get_container()
        places: List[PlaceCandidate] = []
        for name in options.get("city") or []:
            entry = find_entry(name)
            if entry is None:
                raise CommandError(f"Unknown city {name!r}")
            places.append(entry.place)
        if options.get("recents"):
            places.extend(
                PlaceCandidate(name=item.name, latitude=item.latitude, longitude=item.longitude)
                for item in container.recents.list()
            )
        places = list(dict.fromkeys(places))
        if not places:
            raise CommandError("Nothing to refresh: pass --city NAME or --recents")

        futures = container.aggregator.refresh_many(places)
        summary: List[Dict[str, Any]] = []
        for place, future in zip(places, futures):
            snapshot = future.result()
            if snapshot is None:
                summary.append({"city": place.name, "ok": False})
                continue
            summary.append(
                {
                    "city": place.name,
                    "ok": True,
                    "fetched_at": snapshot.fetched_at.isoformat(),
                    "timezone": snapshot.timezone_name,
                    "temperature_c": snapshot.current.temperature_c,
                    "condition": snapshot.current.condition,
                }
            )

        self.stdout.write(json.dumps(summary, ensure_ascii=False))
        if not any(item["ok"] for item in summary):
            raise CommandError("All weather refreshes failed")
