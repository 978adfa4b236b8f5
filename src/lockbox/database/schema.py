"""SQLite schema definitions for the LockBox state database."""

SCHEMA_VERSION = 1

CREATE_TABLES = [
    # Remembered vault file handles - lets a granted file be reopened after restart
    """
    CREATE TABLE IF NOT EXISTS file_handles (
        name TEXT PRIMARY KEY,
        path TEXT NOT NULL,
        granted BOOLEAN DEFAULT FALSE,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    # Fallback key-value store for hosts without a usable vault file
    """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def get_init_schema():
    """Return the list of statements that create the schema."""
    return CREATE_TABLES + [
        f"INSERT OR IGNORE INTO schema_version (version) VALUES ({SCHEMA_VERSION})"
    ]
