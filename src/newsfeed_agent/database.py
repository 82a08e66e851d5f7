"""SQLite key-value store backing the response cache."""

import sqlite3
import threading
from datetime import datetime

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class Database:
    """String-keyed, string-valued persistent store.

    Methods block; callers running on an event loop should offload them
    to a worker thread. A lock serialises use of the single connection.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        """Open database connection and initialize schema."""
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    def get(self, key: str) -> str | None:
        """Return the value stored under key, or None."""
        with self._lock:
            row = self.conn.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        """Insert or overwrite the value stored under key."""
        with self._lock:
            self.conn.execute(
                """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value, datetime.utcnow().isoformat()),
            )
            self.conn.commit()

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with self._lock:
            cursor = self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self.conn.commit()
        return cursor.rowcount > 0

    def list_keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with prefix, in key order."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [r["key"] for r in rows]
