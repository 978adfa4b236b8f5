"""Startup-time choice between the file backend and the key-value fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.exceptions import StorageError
from ..core.settings import LockBoxSettings
from ..database.connection import DatabaseConnection
from ..database.models import FileHandleModel
from .backend import FilePicker, VaultBackend
from .file_backend import FileHandleBackend
from .kv_backend import KeyringKeyValueStore, KeyValueBackend, SqliteKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class BackendSelection:
    backend: Optional[VaultBackend]
    notice: str
    file_supported: bool = False

    @property
    def available(self) -> bool:
        return self.backend is not None


def _file_backend(settings, picker, db) -> FileHandleBackend:
    handle_model = None
    if db is not None:
        try:
            db.initialize()
            handle_model = FileHandleModel(db)
        except StorageError as e:
            # Handles just won't survive a restart.
            logger.warning("Handle store unavailable: %s", e)
    return FileHandleBackend(
        picker,
        handle_model=handle_model,
        remember_permission=settings.remember_permission,
    )


def _kv_backend(settings, db) -> KeyValueBackend:
    if settings.kv_store == "keyring":
        return KeyValueBackend(KeyringKeyValueStore())
    return KeyValueBackend(SqliteKeyValueStore(db))


def select_backend(
    settings: LockBoxSettings,
    picker: Optional[FilePicker] = None,
    db: Optional[DatabaseConnection] = None,
) -> BackendSelection:
    """Probe storage once and pick the backend for this run.

    ``auto`` prefers the file backend whenever a picker exists. A ``None``
    backend means nothing is usable and the vault runs memory-only.
    """
    if db is None:
        db = DatabaseConnection(settings.db_path)

    file_backend = _file_backend(settings, picker, db)
    file_supported = file_backend.probe_support()

    if settings.backend in ("auto", "file") and file_supported:
        logger.info("Using vault file backend")
        return BackendSelection(file_backend, "Vault is stored in a file you choose.", True)

    if settings.backend == "file":
        logger.warning("File backend requested but no file picker is available; falling back")

    kv_backend = _kv_backend(settings, db)
    if kv_backend.probe_support():
        logger.info("Using key-value fallback backend (%s)", kv_backend.kv.name)
        return BackendSelection(
            kv_backend,
            f"File selection is unavailable; the vault is kept in the {kv_backend.kv.name} store.",
            file_supported,
        )

    logger.error("No persistence backend available; running memory-only")
    return BackendSelection(
        None,
        "No storage is available. Changes are kept in memory only and will be lost on exit.",
        file_supported,
    )
