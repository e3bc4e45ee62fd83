"""
Storage Tiers

Two tiers sit behind one interface with Web Storage semantics (string keys,
string values, synchronous calls):

- durable:   small preference values that survive across sessions (SQLite)
- ephemeral: rendered section HTML scoped to the current session (memory)

Backends raise StorageUnavailable / StorageQuotaExceeded. They never decide
policy; the manager decides whether a failure matters.
"""

import logging
import os
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import StorageQuotaExceeded, StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = os.path.expanduser("~/.cache/tilecache/durable.db")


class StorageTier(ABC):
    """Minimal key/value surface shared by both tiers."""

    name = "storage"

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key. Removing an absent key is not an error."""

    @abstractmethod
    def keys(self) -> List[str]:
        """Snapshot of every key currently stored, including other apps' keys."""

    def __contains__(self, key: str) -> bool:
        return self.get_item(key) is not None

    def __len__(self) -> int:
        return len(self.keys())


class InMemoryStorage(StorageTier):
    """
    Dict-backed tier. Used as the ephemeral tier and as a fake in tests.

    Args:
        name: label used in log lines
        quota_chars: total characters (keys + values) allowed, None = unlimited
        enabled: False simulates storage switched off by the browser
    """

    def __init__(self, name: str = "memory", quota_chars: Optional[int] = None,
                 enabled: bool = True):
        self.name = name
        self.quota_chars = quota_chars
        self.enabled = enabled
        self._items: Dict[str, str] = {}

    def _check_enabled(self):
        if not self.enabled:
            raise StorageUnavailable(f"{self.name} storage is disabled")

    def _used_chars(self, excluding: Optional[str] = None) -> int:
        return sum(
            len(k) + len(v) for k, v in self._items.items() if k != excluding
        )

    def get_item(self, key: str) -> Optional[str]:
        self._check_enabled()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        value = str(value)
        if self.quota_chars is not None:
            needed = self._used_chars(excluding=key) + len(key) + len(value)
            if needed > self.quota_chars:
                raise StorageQuotaExceeded(
                    f"{self.name} storage quota exceeded ({needed} > {self.quota_chars} chars)"
                )
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        self._check_enabled()
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()


class SQLiteStorage(StorageTier):
    """
    SQLite-backed durable tier.

    One row per key. Writes commit immediately so a crash loses at most the
    write in flight.
    """

    name = "durable"

    def __init__(self, db_path: str = None):
        """Open (and create if needed) the durable store."""
        if db_path is None:
            db_path = DEFAULT_DB_PATH

        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
            self.conn.row_factory = sqlite3.Row
            self._init_schema()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot open {db_path}: {e}") from e

        logger.info(f"SQLiteStorage initialized at {db_path}")

    def _init_schema(self):
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS storage_items (
                item_key TEXT PRIMARY KEY,
                item_value TEXT NOT NULL,
                updated_at INTEGER NOT NULL
            )
        """)
        self.conn.commit()

    def _execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        if self.conn is None:
            raise StorageUnavailable(f"{self.db_path} is closed")
        try:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
            return cursor
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise StorageQuotaExceeded(str(e)) from e
            raise StorageUnavailable(str(e)) from e
        except sqlite3.Error as e:
            raise StorageUnavailable(str(e)) from e

    def get_item(self, key: str) -> Optional[str]:
        row = self._execute(
            "SELECT item_value FROM storage_items WHERE item_key = ?", (key,)
        ).fetchone()
        return row["item_value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        self._execute(
            "INSERT OR REPLACE INTO storage_items (item_key, item_value, updated_at) "
            "VALUES (?, ?, ?)",
            (key, str(value), int(time.time())),
        )

    def remove_item(self, key: str) -> None:
        self._execute("DELETE FROM storage_items WHERE item_key = ?", (key,))

    def keys(self) -> List[str]:
        rows = self._execute("SELECT item_key FROM storage_items").fetchall()
        return [row["item_key"] for row in rows]

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("SQLiteStorage closed")
