"""Key-value storage protocol and SQLite implementation for client state.

Each :class:`SqliteKeyValueStorage` instance plays the role of one browser
tab: its own writes are visible immediately, and writes made through any
other connection to the same database file surface as change signals when
:meth:`SqliteKeyValueStorage.poll_changes` runs.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

StorageListener = Callable[[str, "str | None"], None]

_CREATE_SQL = """\
CREATE TABLE IF NOT EXISTS kv_store (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""

DEFAULT_POLL_INTERVAL_SECONDS = 1.0


# ── Protocol ────────────────────────────────────────────────────────


@runtime_checkable
class KeyValueStorage(Protocol):
    """Minimal interface for persisted client state."""

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def remove(self, key: str) -> None: ...
    def add_listener(self, key: str, listener: StorageListener) -> Callable[[], None]: ...
    def poll_changes(self) -> list[str]: ...


# ── SQLite implementation ───────────────────────────────────────────


class SqliteKeyValueStorage:
    """Thread-safe key-value storage on a single SQLite connection."""

    def __init__(self, db_path: str = ":memory:") -> None:
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._listeners: dict[str, list[StorageListener]] = {}
        self._snapshot: dict[str, str | None] = {}
        with self._lock:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=NORMAL")
            self._conn.executescript(_CREATE_SQL)
            self._conn.commit()
            self._data_version = self._read_data_version()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ── Reads / writes ─────────────────────────────────────────────

    def get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM kv_store WHERE key = ?",
                (key,),
            ).fetchone()
        return None if row is None else str(row["value"])

    def set(self, key: str, value: str) -> None:
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._conn.execute(
                """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value, now_iso),
            )
            self._conn.commit()
            if key in self._listeners:
                self._snapshot[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self._conn.commit()
            if key in self._listeners:
                self._snapshot[key] = None

    # ── Change signal ──────────────────────────────────────────────

    def add_listener(self, key: str, listener: StorageListener) -> Callable[[], None]:
        """Call ``listener(key, new_value)`` when another connection changes ``key``.

        Returns a function that detaches the listener.
        """
        with self._lock:
            if key not in self._listeners:
                self._listeners[key] = []
                self._snapshot[key] = self.get(key)
            self._listeners[key].append(listener)

        def _remove() -> None:
            with self._lock:
                listeners = self._listeners.get(key)
                if listeners and listener in listeners:
                    listeners.remove(listener)
                if listeners is not None and not listeners:
                    del self._listeners[key]
                    self._snapshot.pop(key, None)

        return _remove

    def _read_data_version(self) -> int:
        row = self._conn.execute("PRAGMA data_version").fetchone()
        return int(row[0])

    def poll_changes(self) -> list[str]:
        """Dispatch change signals for watched keys written by other connections.

        Returns the keys whose value changed since the last poll.
        """
        with self._lock:
            version = self._read_data_version()
            if version == self._data_version:
                return []
            self._data_version = version

            changed: list[tuple[str, str | None, list[StorageListener]]] = []
            for key, listeners in self._listeners.items():
                current = self.get(key)
                if current != self._snapshot.get(key):
                    self._snapshot[key] = current
                    changed.append((key, current, list(listeners)))

        for key, value, listeners in changed:
            for listener in listeners:
                try:
                    listener(key, value)
                except Exception:
                    logger.exception("Storage listener failed for key %s", key)
        return [key for key, _, _ in changed]

    async def watch(self, interval: float = DEFAULT_POLL_INTERVAL_SECONDS) -> None:
        """Poll for cross-connection changes until the task is cancelled."""
        while True:
            self.poll_changes()
            await asyncio.sleep(interval)
