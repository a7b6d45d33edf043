"""SQLite connection management with context managers."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """Manages SQLite connections for the block store.

    ``get_connection`` is a plain auto-commit/rollback unit.
    ``write_transaction`` takes the database write lock up front
    (``BEGIN IMMEDIATE``) so a read-check-write sequence inside it
    cannot interleave with another writer.
    """

    def __init__(self, db_path: str | Path, timeout: float = 10.0):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout = timeout

    def _connect(self, **kwargs) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self.db_path), timeout=self.timeout, **kwargs
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def get_connection(self):
        """Yield a connection that auto-commits or rolls back."""
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def write_transaction(self):
        """Yield a connection holding the write lock for its whole body."""
        conn = self._connect(isolation_level=None)
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.debug("Rolled back write transaction on %s", self.db_path)
            raise
        finally:
            conn.close()

    def execute(self, sql: str, params: tuple = ()):
        """Run a single statement and return all rows."""
        with self.get_connection() as conn:
            cursor = conn.execute(sql, params)
            return cursor.fetchall()
