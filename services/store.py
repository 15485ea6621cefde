"""Key/value blob store on top of the SQLite kv_store table."""

import json
from typing import Any

from logger import get_logger

logger = get_logger()

EXPENSES_KEY = "expenses"
SUBCATEGORIES_KEY = "subcategories"
AUDIT_LOG_KEY = "audit_log"


class KeyValueStore:
    """Stores whole JSON documents under a key.

    Every write replaces the full value in one statement, so a failure
    before commit leaves the previous value intact.
    """

    def __init__(self, db_manager):
        """Initialize the store.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def load(self, key: str, default: Any = None) -> Any:
        """Load the value stored under key.

        Args:
            key: Data set key.
            default: Returned when the key is missing or holds unreadable JSON.

        Returns:
            The decoded value, or default.
        """
        with self.db_manager.connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()

        if row is None:
            return default

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning(f"Stored value for '{key}' is not valid JSON: {e}")
            return default

    def persist(self, key: str, value: Any) -> None:
        """Replace the value stored under key.

        Raises:
            sqlite3.Error: If the write fails. Nothing is changed in that case.
        """
        payload = json.dumps(value)
        with self.db_manager.connect() as conn:
            conn.execute(
                """
                INSERT INTO kv_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, payload),
            )
            conn.commit()
