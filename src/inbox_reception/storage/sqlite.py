"""SQLite-backed key-value persistence."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import TracebackType
from typing import Any

from ..core.config import StorageSettings
from ..core.interfaces import KeyValueStore

LOGGER = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class SqliteKeyValueStore(KeyValueStore):
    """Persist JSON-encoded values under string keys using SQLite."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and ensure the table exists."""
        self._settings = settings
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        with self._connection:
            self._connection.execute(_SCHEMA)

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteKeyValueStore:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # KeyValueStore API -------------------------------------------------------
    def get(self, keys: Sequence[str]) -> dict[str, Any]:
        """Return decoded values for the requested keys that exist."""
        if not keys:
            return {}
        placeholders = ", ".join("?" for _ in keys)
        rows = self._connection.execute(
            f"SELECT key, value FROM kv_store WHERE key IN ({placeholders})",
            tuple(keys),
        ).fetchall()
        values: dict[str, Any] = {}
        for row in rows:
            try:
                values[row["key"]] = json.loads(row["value"])
            except json.JSONDecodeError:
                LOGGER.warning("Ignoring undecodable value for key %s", row["key"])
        return values

    def set(self, items: Mapping[str, Any]) -> None:
        """Store every item in a single transaction."""
        encoded = [(key, json.dumps(value)) for key, value in items.items()]
        with self._connection:
            self._connection.executemany(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                encoded,
            )
        LOGGER.debug("Stored keys %s", ", ".join(items))

    def clear(self, keys: Sequence[str]) -> None:
        """Delete the given keys in a single transaction."""
        with self._connection:
            self._connection.executemany(
                "DELETE FROM kv_store WHERE key = ?", [(key,) for key in keys]
            )
        LOGGER.debug("Cleared keys %s", ", ".join(keys))

    def close(self) -> None:
        """Close the database connection."""
        self._connection.close()


__all__ = ["SqliteKeyValueStore"]
