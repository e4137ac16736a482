"""Durable storage: a small key-value store and the per-city day history.

Both are backed by SQLite through :class:`Database`; in-memory variants with
the same interface exist for tests and for running without a disk.
"""
from __future__ import annotations

import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Dict, Iterator, Optional, Protocol, Tuple

from .entities import DailyPoint, normalize_city_key


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class DailyHistory(Protocol):
    def record(self, city: str, point: DailyPoint) -> None:
        ...

    def get(self, city: str, day: date) -> Optional[DailyPoint]:
        ...


class DatabaseSession:
    """Minimal DB-API session wrapper."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def execute(self, sql: str, params: tuple = ()):
        cursor = self.connection.cursor()
        cursor.execute(sql, params)
        return cursor

    def fetchone(self, sql: str, params: tuple = ()):
        cursor = self.execute(sql, params)
        row = cursor.fetchone()
        cursor.close()
        return row

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()


class Database:
    """One SQLite connection shared by the stores, serialized with a lock."""

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        if path != ":memory:":
            directory = os.path.dirname(os.path.abspath(path))
            os.makedirs(directory, exist_ok=True)
        self._connection = sqlite3.connect(path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self.run_migrations()

    @contextmanager
    def session_scope(self) -> Iterator[DatabaseSession]:
        with self._lock:
            session = DatabaseSession(self._connection)
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def run_migrations(self) -> None:
        with self.session_scope() as session:
            session.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key VARCHAR(255) PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            session.execute(
                """
                CREATE TABLE IF NOT EXISTS daily_history (
                    city_key VARCHAR(255) NOT NULL,
                    day TEXT NOT NULL,
                    low_c REAL,
                    high_c REAL,
                    condition VARCHAR(64) NOT NULL,
                    symbol_name VARCHAR(64) NOT NULL,
                    precipitation_chance REAL,
                    recorded_at TEXT NOT NULL
                )
                """
            )
            session.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS uniq_daily_history_city_day
                ON daily_history (city_key, day)
                """
            )

    def close(self) -> None:
        with self._lock:
            self._connection.close()


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteKeyValueStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    def get(self, key: str) -> Optional[bytes]:
        with self._db.session_scope() as session:
            row = session.fetchone("SELECT value FROM kv_store WHERE key = ?", (key,))
        if row is None:
            return None
        return bytes(row["value"])

    def set(self, key: str, value: bytes) -> None:
        with self._db.session_scope() as session:
            session.execute(
                """
                INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, sqlite3.Binary(value), utcnow_iso()),
            )


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)


def _point_from_row(row) -> DailyPoint:
    return DailyPoint(
        day=date.fromisoformat(row["day"]),
        low_c=row["low_c"],
        high_c=row["high_c"],
        condition=row["condition"],
        symbol_name=row["symbol_name"],
        precipitation_chance=row["precipitation_chance"],
    )


class SQLiteDailyHistory:
    """Keeps the last recorded forecast for each (city, local day); later writes win."""

    def __init__(self, database: Database) -> None:
        self._db = database

    def record(self, city: str, point: DailyPoint) -> None:
        with self._db.session_scope() as session:
            session.execute(
                """
                INSERT INTO daily_history (
                    city_key, day, low_c, high_c, condition, symbol_name, precipitation_chance, recorded_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(city_key, day) DO UPDATE SET
                    low_c = excluded.low_c,
                    high_c = excluded.high_c,
                    condition = excluded.condition,
                    symbol_name = excluded.symbol_name,
                    precipitation_chance = excluded.precipitation_chance,
                    recorded_at = excluded.recorded_at
                """,
                (
                    normalize_city_key(city),
                    point.day.isoformat(),
                    point.low_c,
                    point.high_c,
                    point.condition,
                    point.symbol_name,
                    point.precipitation_chance,
                    utcnow_iso(),
                ),
            )

    def get(self, city: str, day: date) -> Optional[DailyPoint]:
        with self._db.session_scope() as session:
            row = session.fetchone(
                "SELECT * FROM daily_history WHERE city_key = ? AND day = ?",
                (normalize_city_key(city), day.isoformat()),
            )
        if row is None:
            return None
        return _point_from_row(row)


class InMemoryDailyHistory:
    def __init__(self) -> None:
        self._data: Dict[Tuple[str, date], DailyPoint] = {}
        self._lock = threading.Lock()

    def record(self, city: str, point: DailyPoint) -> None:
        with self._lock:
            self._data[(normalize_city_key(city), point.day)] = point

    def get(self, city: str, day: date) -> Optional[DailyPoint]:
        with self._lock:
            return self._data.get((normalize_city_key(city), day))


__all__ = [
    "DailyHistory",
    "Database",
    "DatabaseSession",
    "InMemoryDailyHistory",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteDailyHistory",
    "SQLiteKeyValueStore",
]
