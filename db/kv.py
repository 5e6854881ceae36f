import sqlite3
import threading
from typing import Dict, Optional, Protocol

from utils.errors import StorageError
from .database import get_conn


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...


class SqliteKeyValueStore:
    """Blob store backed by the kv_store table."""

    def get(self, key: str) -> Optional[bytes]:
        try:
            with get_conn() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc
        if not row:
            return None
        value = row["value"]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def set(self, key: str, value: bytes) -> None:
        try:
            with get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, datetime('now'))
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(value)),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)
