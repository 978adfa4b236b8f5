"""ORM-style helpers for database operations."""

from typing import Optional

from .connection import DatabaseConnection


class BaseModel:
    """Base class for DB models."""

    __slots__ = ("db",)

    def __init__(self, db: DatabaseConnection):
        """Initialize with a DatabaseConnection."""
        self.db = db


class FileHandleModel(BaseModel):
    """DB model for remembered vault file handles."""

    def put(self, name, path, granted=False):
        """Insert or replace the handle record stored under ``name``."""
        query = """
            INSERT OR REPLACE INTO file_handles (name, path, granted, updated_at)
            VALUES (?, ?, ?, CURRENT_TIMESTAMP)
        """
        self.db.execute(query, (name, str(path), bool(granted)))

    def get(self, name):
        """Get a handle record by name."""
        query = "SELECT * FROM file_handles WHERE name = ?"
        return self.db.fetch_one(query, (name,))

    def delete(self, name):
        """Delete a handle record by name."""
        self.db.execute("DELETE FROM file_handles WHERE name = ?", (name,))
        return True


class KeyValueModel(BaseModel):
    """DB model for the fallback key-value store."""

    def put(self, key: str, value: bytes) -> None:
        query = """
            INSERT OR REPLACE INTO kv_store (key, value, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
        """
        self.db.execute(query, (key, value))

    def get(self, key: str) -> Optional[bytes]:
        row = self.db.fetch_one("SELECT value FROM kv_store WHERE key = ?", (key,))
        if row is None:
            return None
        value = row["value"]
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def delete(self, key: str) -> None:
        self.db.execute("DELETE FROM kv_store WHERE key = ?", (key,))

