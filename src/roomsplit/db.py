"""SQLite snapshot store for RoomSplit."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from .exceptions import StorageError


class Database:
    """SQLite-backed key/value store of JSON snapshots."""

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS snapshots (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    # ========================================================================
    # Snapshot operations
    # ========================================================================

    def load(self, key: str, default: Any = None) -> Any:
        """Get a stored value by key, or ``default`` if nothing is stored."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM snapshots WHERE key = ?", (key,))
        row = cursor.fetchone()
        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise StorageError(
                f"Stored value for '{key}' in {self.db_path} is not valid JSON: {e}"
            ) from e

    def save(self, key: str, value: Any):
        """Store a JSON-serializable value under a key."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO snapshots (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(value), datetime.now().isoformat()),
        )
        self.conn.commit()

    def delete(self, key: str) -> bool:
        """Delete a stored value. Returns True if something was deleted."""
        cursor = self.conn.cursor()
        cursor.execute("DELETE FROM snapshots WHERE key = ?", (key,))
        self.conn.commit()
        return cursor.rowcount > 0

    def get_updated_at(self, key: str) -> datetime | None:
        """When a key was last saved."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT updated_at FROM snapshots WHERE key = ?", (key,))
        row = cursor.fetchone()
        return datetime.fromisoformat(row["updated_at"]) if row else None
