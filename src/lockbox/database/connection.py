"""SQLite connection and initialization utilities."""

import sqlite3
import threading
from pathlib import Path

from .schema import get_init_schema
from ..core.exceptions import StorageError


class DatabaseConnection:
    """Manage SQLite connections and schema init."""

    __slots__ = ("db_path", "_local", "_lock", "_initialized")

    def __init__(self, db_path="./lockbox.db"):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

    def initialize(self):
        """Initialize schema if not already initialized."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = self._get_connection()
                for statement in get_init_schema():
                    conn.execute(statement)
                self._initialized = True
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Failed to initialize database: {e}")

    def _get_connection(self):
        """Get or create a thread-local SQLite connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            self._local.connection.row_factory = sqlite3.Row

        return self._local.connection

    def execute(self, query, params=()):
        """Execute a single SQL statement."""
        try:
            cursor = self._get_connection().execute(query, params)
            cursor.close()
        except sqlite3.Error as e:
            raise StorageError(f"Database write failed: {e}")

    def fetch_one(self, query, params=()):
        """Fetch a single row as a dict or None."""
        try:
            cursor = self._get_connection().execute(query, params)
            try:
                row = cursor.fetchone()
            finally:
                cursor.close()
        except sqlite3.Error as e:
            raise StorageError(f"Database read failed: {e}")
        return dict(row) if row else None

    def close(self):
        """Close the thread-local connection if open."""
        if getattr(self._local, "connection", None) is not None:
            self._local.connection.close()
            self._local.connection = None

