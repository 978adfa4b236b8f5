"""
Capability-file backend: the vault lives in one file the user chose.

Handle lifecycle:
 - set by select_new_or_existing() (user gesture) or restore()/reauthorize()
 - remembered in the state database so it survives restarts
 - discarded whenever its permission resolves to anything but GRANTED
 - cleared by forget_handle() on lock

Writes are atomic (temp file in the same directory + os.replace), so a
reader never observes half of one save and half of another.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from ..core.exceptions import (
    IOFailureError,
    PermissionDeniedError,
    StorageError,
    UserCancelledError,
    VaultExistsError,
)
from ..database.models import FileHandleModel
from .backend import FileHandle, FilePicker, Permission, VaultBackend

logger = logging.getLogger(__name__)

HANDLE_NAME = "vaultFileHandle"
DEFAULT_FILE_NAME = "vault.dat"


def _holds_data(path: Path) -> bool:
    try:
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


class FileHandleBackend(VaultBackend):
    name = "file"

    def __init__(
        self,
        picker: Optional[FilePicker],
        handle_model: Optional[FileHandleModel] = None,
        remember_permission: bool = True,
        suggested_name: str = DEFAULT_FILE_NAME,
    ):
        self.picker = picker
        self.handle_model = handle_model
        self.remember_permission = remember_permission
        self.suggested_name = suggested_name
        self._handle: Optional[FileHandle] = None
        self._io_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Capability operations
    # ------------------------------------------------------------------

    def probe_support(self) -> bool:
        return self.picker is not None

    @property
    def handle(self) -> Optional[FileHandle]:
        return self._handle

    def select_new_or_existing(self, create: bool = False) -> Optional[FileHandle]:
        """Ask the user for a vault file. Cancelling leaves the current handle untouched.

        With ``create`` the chosen path must not already hold data.
        """
        if self.picker is None:
            return None
        try:
            if create:
                path = self.picker.choose_new(self.suggested_name)
            else:
                path = self.picker.choose_existing()
        except UserCancelledError:
            logger.debug("Vault file selection cancelled")
            return None
        if path is None:
            return None

        handle = FileHandle(path=Path(path).expanduser().resolve(), granted=True)
        if self.query_permission(handle) is not Permission.GRANTED:
            raise PermissionDeniedError(f"No read/write access to {handle.path}")
        if create and _holds_data(handle.path):
            # Never replace an existing vault with a fresh one.
            raise VaultExistsError(f"{handle.path} already holds a vault; open it instead")
        self._handle = handle
        self.persist_handle_across_restarts(handle)
        logger.info("Vault file selected: %s", handle.path)
        return handle

    def query_permission(self, handle: FileHandle) -> Permission:
        path = handle.path
        if path.exists():
            if not path.is_file() or not os.access(path, os.R_OK | os.W_OK):
                return Permission.DENIED
        elif not path.parent.is_dir() or not os.access(path.parent, os.W_OK):
            return Permission.DENIED
        return Permission.GRANTED if handle.granted else Permission.PROMPT

    def request_permission(self, handle: FileHandle) -> Permission:
        """User-gesture confirmation that the remembered file may be used."""
        if self.query_permission(handle) is Permission.DENIED:
            return Permission.DENIED
        if self.picker is None or not self.picker.confirm_access(handle.path):
            return Permission.DENIED
        handle.granted = True
        return Permission.GRANTED

    def read_all(self, handle: FileHandle) -> Optional[bytes]:
        self._require_granted(handle)
        with self._io_lock:
            try:
                data = handle.path.read_bytes()
            except FileNotFoundError:
                return None
            except PermissionError as e:
                self._discard(handle)
                raise PermissionDeniedError(f"Read access to {handle.path} denied: {e}")
            except OSError as e:
                raise IOFailureError(f"Failed to read {handle.path}: {e}")
        return data if data.strip() else None

    def write_all(self, handle: FileHandle, data: bytes) -> None:
        self._require_granted(handle)
        path = handle.path
        with self._io_lock:
            tmp_path = None
            try:
                fd, tmp_name = tempfile.mkstemp(
                    dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
                )
                tmp_path = Path(tmp_name)
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
                tmp_path = None
            except PermissionError as e:
                self._discard(handle)
                raise PermissionDeniedError(f"Write access to {path} denied: {e}")
            except OSError as e:
                raise IOFailureError(f"Failed to write {path}: {e}")
            finally:
                if tmp_path is not None:
                    tmp_path.unlink(missing_ok=True)

    def persist_handle_across_restarts(self, handle: FileHandle) -> None:
        if self.handle_model is None:
            return
        try:
            self.handle_model.put(
                HANDLE_NAME, handle.path, granted=handle.granted and self.remember_permission
            )
        except StorageError as e:
            # The handle still works for this run.
            logger.warning("Could not remember vault file handle: %s", e)

    def forget_handle(self) -> None:
        self._handle = None
        if self.handle_model is None:
            return
        try:
            self.handle_model.delete(HANDLE_NAME)
        except StorageError as e:
            logger.warning("Could not clear remembered vault file handle: %s", e)

    def remembered_handle(self) -> Optional[FileHandle]:
        if self.handle_model is None:
            return None
        try:
            record = self.handle_model.get(HANDLE_NAME)
        except StorageError as e:
            logger.warning("Could not read remembered vault file handle: %s", e)
            return None
        if not record:
            return None
        return FileHandle(path=Path(record["path"]), granted=bool(record["granted"]))

    def reauthorize(self) -> Optional[bytes]:
        """User-gesture path: grant access to the remembered file and read it."""
        handle = self._handle or self.remembered_handle()
        if handle is None:
            return None
        if self.request_permission(handle) is not Permission.GRANTED:
            self._discard(handle)
            return None
        self._handle = handle
        self.persist_handle_across_restarts(handle)
        return self.read_all(handle)

    # ------------------------------------------------------------------
    # VaultBackend
    # ------------------------------------------------------------------

    def restore(self) -> Optional[bytes]:
        handle = self.remembered_handle()
        if handle is None:
            return None
        permission = self.query_permission(handle)
        if permission is not Permission.GRANTED:
            # Prompting needs a user gesture; report "no vault yet" instead.
            logger.info("Remembered vault file needs permission (%s): %s", permission.value, handle.path)
            self._handle = None
            return None
        self._handle = handle
        return self.read_all(handle)

    def select_existing(self) -> Optional[bytes]:
        handle = self.select_new_or_existing(create=False)
        if handle is None:
            return None
        return self.read_all(handle)

    def read(self) -> Optional[bytes]:
        if self._handle is None:
            return None
        return self.read_all(self._handle)

    def write(self, data: bytes) -> Optional[str]:
        handle = self._handle
        if handle is None:
            handle = self.select_new_or_existing(create=True)
            if handle is None:
                return None
        self.write_all(handle, data)
        return str(handle.path)

    def forget(self) -> None:
        self.forget_handle()

    @property
    def has_target(self) -> bool:
        return self._handle is not None

    @property
    def location(self) -> Optional[str]:
        return str(self._handle.path) if self._handle else None

    # ------------------------------------------------------------------

    def _require_granted(self, handle: FileHandle) -> None:
        if self.query_permission(handle) is not Permission.GRANTED:
            self._discard(handle)
            raise PermissionDeniedError(f"Vault file access not granted: {handle.path}")

    def _discard(self, handle: FileHandle) -> None:
        # A stale, unauthorized handle is worse than none.
        if self._handle is handle or (self._handle and self._handle.path == handle.path):
            logger.info("Discarding vault file handle: %s", handle.path)
            self._handle = None
