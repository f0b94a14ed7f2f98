"""SQLite key-value store holding the persisted history blobs."""
import json
import aiosqlite
from datetime import datetime
from pathlib import Path
from typing import Any, Optional


# Default database location
DEFAULT_DB_PATH = Path.home() / ".wheredidisee" / "history.db"


class KeyValueStore:
    """Async SQLite store of JSON values under well-known keys.

    Each value is read and written wholesale; there is no partial update.
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the key-value store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.wheredidisee/history.db
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Initialize the database, creating the table if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT
            )
        """)

        await self._connection.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def is_initialized(self) -> bool:
        return self._connection is not None

    def _require_connection(self) -> aiosqlite.Connection:
        if not self._connection:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._connection

    async def get(self, key: str) -> Optional[Any]:
        """Get the decoded value stored under a key.

        Args:
            key: Storage key

        Returns:
            Decoded JSON value or None if the key is absent

        Raises:
            json.JSONDecodeError: If the stored text is not valid JSON
        """
        connection = self._require_connection()

        cursor = await connection.execute(
            "SELECT value FROM kv_store WHERE key = ?",
            (key,)
        )
        row = await cursor.fetchone()

        if row is None:
            return None

        return json.loads(row["value"])

    async def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under a key, replacing any old one."""
        await self.set_raw(key, json.dumps(value))

    async def set_raw(self, key: str, text: str) -> None:
        """Store raw text under a key without encoding it."""
        connection = self._require_connection()

        now = datetime.utcnow().isoformat()

        await connection.execute("""
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
        """, (key, text, now))

        await connection.commit()

    async def remove(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if deleted, False if not found
        """
        connection = self._require_connection()

        cursor = await connection.execute(
            "DELETE FROM kv_store WHERE key = ?",
            (key,)
        )
        await connection.commit()

        return cursor.rowcount > 0
