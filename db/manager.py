"""Database manager for SQLite connections, paths and schema migrations."""

import sqlite3
from contextlib import contextmanager
from typing import List, Set

from config import Config, get_migrations_dir
from logger import get_logger

logger = get_logger()


def init_schema_migrations_table(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            migration_file TEXT PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    conn.commit()


def get_applied_migrations(conn: sqlite3.Connection) -> Set[str]:
    cursor = conn.execute("SELECT migration_file FROM schema_migrations")
    return {row[0] for row in cursor.fetchall()}


def get_available_migrations() -> List[str]:
    migrations_dir = get_migrations_dir()
    if not migrations_dir.exists():
        return []
    return sorted(p.name for p in migrations_dir.glob("*.sql"))


def apply_pending_migrations(conn: sqlite3.Connection) -> List[str]:
    """Apply every migration not yet recorded, in filename order.

    Returns:
        Names of the migrations applied by this call.
    """
    init_schema_migrations_table(conn)
    applied = get_applied_migrations(conn)
    pending = [m for m in get_available_migrations() if m not in applied]

    for migration_file in pending:
        sql = (get_migrations_dir() / migration_file).read_text()
        try:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_migrations (migration_file) VALUES (?)",
                (migration_file,),
            )
            conn.commit()
            logger.info(f"Applied migration: {migration_file}")
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Error applying migration {migration_file}: {e}")
            raise

    return pending


class DatabaseManager:
    """Manages database connections and paths.

    The database holds a single key/value table; each data set is one row
    that is read and replaced as a whole.

    Args:
        config: Application configuration object.
    """

    def __init__(self, config: Config):
        self.config = config

    @contextmanager
    def connect(self):
        """Get a database connection with automatic cleanup.

        Yields:
            sqlite3.Connection: Database connection.
        """
        db_path = self.config.db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(db_path)
        try:
            yield conn
        finally:
            conn.close()

    def ensure_schema(self) -> List[str]:
        """Bring the database up to date. Returns the migrations applied."""
        with self.connect() as conn:
            return apply_pending_migrations(conn)

    def get_db_path(self):
        return self.config.db_path
