"""
Fallback key-value backend, used when the host has no file picker.

The encrypted document is kept under a fixed key. A second fixed key was
used by earlier versions to stage a loaded-but-unverified document; staging
now lives in the session, so that key is only ever purged.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from ..core.exceptions import IOFailureError, StorageError
from ..database.connection import DatabaseConnection
from ..database.models import KeyValueModel
from ..security import keystore
from .backend import VaultBackend

logger = logging.getLogger(__name__)

DOCUMENT_KEY = "vaultData"
STAGING_KEY = "tempVaultData"
KEYRING_SERVICE = "lockbox"


class KeyValueStore(ABC):
    name = "kv"

    @abstractmethod
    def available(self) -> bool:
        ...

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        ...

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class SqliteKeyValueStore(KeyValueStore):
    """Key-value pairs in the ``kv_store`` table of the state database."""

    name = "sqlite"

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self.model = KeyValueModel(db)

    def available(self) -> bool:
        try:
            self.db.initialize()
        except StorageError as e:
            logger.warning("SQLite key-value store unavailable: %s", e)
            return False
        return True

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.model.get(key)
        except StorageError as e:
            raise IOFailureError(str(e))

    def put(self, key: str, value: bytes) -> None:
        try:
            self.model.put(key, value)
        except StorageError as e:
            raise IOFailureError(str(e))

    def delete(self, key: str) -> None:
        try:
            self.model.delete(key)
        except StorageError as e:
            raise IOFailureError(str(e))


class KeyringKeyValueStore(KeyValueStore):
    """Key-value pairs in the OS keystore (one entry per key)."""

    name = "keyring"

    def __init__(self, service: str = KEYRING_SERVICE):
        self.service = service

    def available(self) -> bool:
        usable, message = keystore.assess_keyring_backend()
        if not usable:
            logger.warning("Keyring key-value store unavailable: %s", message)
        return usable

    def get(self, key: str) -> Optional[bytes]:
        try:
            return keystore.load_secret(self.service, key)
        except keystore.KeyringError as e:
            raise IOFailureError(f"Keyring read failed: {e}")

    def put(self, key: str, value: bytes) -> None:
        try:
            keystore.save_secret(self.service, key, value)
        except keystore.KeyringError as e:
            raise IOFailureError(f"Keyring write failed: {e}")

    def delete(self, key: str) -> None:
        try:
            keystore.delete_secret(self.service, key)
        except keystore.KeyringError as e:
            raise IOFailureError(f"Keyring delete failed: {e}")


class KeyValueBackend(VaultBackend):
    name = "kv"

    def __init__(self, store: KeyValueStore):
        self.kv = store
        self._io_lock = threading.Lock()

    # Key-value operations

    def load(self, key: str) -> Optional[bytes]:
        with self._io_lock:
            return self.kv.get(key)

    def store(self, key: str, data: bytes) -> None:
        with self._io_lock:
            self.kv.put(key, data)

    def remove(self, key: str) -> None:
        with self._io_lock:
            self.kv.delete(key)

    # VaultBackend

    def probe_support(self) -> bool:
        return self.kv.available()

    def restore(self) -> Optional[bytes]:
        return self.read()

    def select_existing(self) -> Optional[bytes]:
        # There is nothing to pick; the document lives under a fixed key.
        return self.read()

    def read(self) -> Optional[bytes]:
        return self.load(DOCUMENT_KEY)

    def write(self, data: bytes) -> Optional[str]:
        self.store(DOCUMENT_KEY, data)
        return self.location

    def forget(self) -> None:
        try:
            self.remove(STAGING_KEY)
        except IOFailureError as e:
            logger.warning("Could not purge staging cache: %s", e)

    @property
    def location(self) -> Optional[str]:
        return f"{self.kv.name}:{DOCUMENT_KEY}"
