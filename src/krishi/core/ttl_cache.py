"""Key/value caches with per-entry time-to-live.

Both backends expose `get`, `set(key, value, ttl_sec)`, `ttl` and `delete`.
Expiry is evaluated lazily on read against an injectable clock. The SQLite
backend also sweeps expired rows every `purge_every_writes` writes so keys
that are never read again do not accumulate.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from threading import Lock
from time import time
from typing import Callable, Protocol

Clock = Callable[[], float]


class TTLCache(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, *, ttl_sec: float) -> None: ...

    def ttl(self, key: str) -> float | None: ...

    def delete(self, key: str) -> None: ...


class MemoryTTLCache:
    """Process-local cache, used in tests and single-process dev runs."""

    def __init__(self, *, clock: Clock = time) -> None:
        self._clock = clock
        self._lock = Lock()
        self._items: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at <= self._clock():
                self._items.pop(key, None)
                return None
            return value

    def set(self, key: str, value: str, *, ttl_sec: float) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be > 0")
        with self._lock:
            self._items[key] = (value, self._clock() + float(ttl_sec))

    def ttl(self, key: str) -> float | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            remaining = item[1] - self._clock()
            return remaining if remaining > 0 else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)


class SqliteTTLCache:
    """Cache table living next to the record tables in the same SQLite file."""

    def __init__(self, db_path: str | Path, *, clock: Clock = time, purge_every_writes: int = 100) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._purge_every_writes = max(0, int(purge_every_writes))
        self._writes_since_purge = 0
        self._counter_lock = Lock()
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    cache_key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                );
                """
            )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def get(self, key: str) -> str | None:
        now = self._clock()
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM cache_entries WHERE cache_key = ?;",
                (key,),
            ).fetchone()
            if row is None:
                return None
            if float(row["expires_at"]) <= now:
                conn.execute("DELETE FROM cache_entries WHERE cache_key = ? AND expires_at <= ?;", (key, now))
                return None
            return str(row["value"])

    def set(self, key: str, value: str, *, ttl_sec: float) -> None:
        if ttl_sec <= 0:
            raise ValueError("ttl_sec must be > 0")
        expires_at = self._clock() + float(ttl_sec)
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO cache_entries(cache_key, value, expires_at)
                VALUES(?, ?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    value = excluded.value,
                    expires_at = excluded.expires_at;
                """,
                (key, value, expires_at),
            )
        if self._purge_due():
            self.purge_expired()

    def _purge_due(self) -> bool:
        if not self._purge_every_writes:
            return False
        with self._counter_lock:
            self._writes_since_purge += 1
            if self._writes_since_purge < self._purge_every_writes:
                return False
            self._writes_since_purge = 0
            return True

    def ttl(self, key: str) -> float | None:
        with self._connect() as conn:
            row = conn.execute("SELECT expires_at FROM cache_entries WHERE cache_key = ?;", (key,)).fetchone()
        if row is None:
            return None
        remaining = float(row["expires_at"]) - self._clock()
        return remaining if remaining > 0 else None

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM cache_entries WHERE cache_key = ?;", (key,))

    def purge_expired(self) -> int:
        with self._connect() as conn:
            cur = conn.execute("DELETE FROM cache_entries WHERE expires_at <= ?;", (self._clock(),))
            return int(cur.rowcount)
