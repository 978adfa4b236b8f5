"""
VaultRepository: the command surface the UI talks to.

Every mutating command is a full read-modify-persist cycle: the in-memory
plaintext model is changed, the whole model is re-encrypted into a fresh
document and that document replaces whatever the backend held before.

Saves are serialized. Each save snapshots the model only after it owns the
save lock, so the save that completes last always carries the newest state.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, List, Optional

from ..security.session import VaultSession, VaultState
from ..storage.backend import VaultBackend
from ..storage.selection import select_backend
from .codec import seal_document
from .exceptions import (
    BackendUnavailableError,
    EmptyInputError,
    InvalidIndexError,
    PermissionDeniedError,
    StorageError,
    UnsavedChangesError,
)
from .models import Credential, InformationItem, VaultDocument

logger = logging.getLogger(__name__)

BACKUP_NAME_TEMPLATE = "vault-backup-{date}.json"


@dataclass
class SaveResult:
    persisted: bool
    location: Optional[str] = None


@dataclass
class ExportResult:
    saved: SaveResult
    backup_path: Optional[Path] = None
    backup_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.backup_path is not None and self.backup_error is None


@dataclass
class StartupStatus:
    has_vault: bool
    backend: Optional[str]
    notice: str = ""
    error: Optional[str] = None


def _require_fields(*values: str) -> None:
    if any(not v or not v.strip() for v in values):
        raise EmptyInputError("Please fill in all fields")


class VaultRepository:
    """CRUD over information items and credentials on top of a session and a backend."""

    def __init__(
        self,
        backend: Optional[VaultBackend],
        session: Optional[VaultSession] = None,
        export_dir: Optional[Path] = None,
        notice: str = "",
        today: Callable[[], date] = date.today,
    ):
        self.backend = backend
        self.session = session or VaultSession()
        self.export_dir = Path(export_dir) if export_dir else Path.cwd()
        self.notice = notice
        self._today = today
        # _state_lock guards the plaintext lists; _save_lock serializes writes.
        self._state_lock = threading.RLock()
        self._save_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, picker=None, db=None) -> "VaultRepository":
        selection = select_backend(settings, picker=picker, db=db)
        return cls(
            selection.backend,
            session=VaultSession(settings.kdf_template),
            export_dir=settings.export_dir,
            notice=selection.notice,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self.session.state

    @property
    def is_unlocked(self) -> bool:
        return self.session.is_unlocked

    @property
    def has_vault(self) -> bool:
        """True when a stored document is staged and waiting for a password."""
        return self.session.staged_document is not None

    @property
    def memory_only(self) -> bool:
        return self.backend is None

    @property
    def backend_name(self) -> Optional[str]:
        return self.backend.name if self.backend else None

    @property
    def information(self) -> List[InformationItem]:
        with self._state_lock:
            if not self.session.is_unlocked:
                return []
            return [InformationItem(i.name, i.value) for i in self.session.information]

    @property
    def credentials(self) -> List[Credential]:
        with self._state_lock:
            if not self.session.is_unlocked:
                return []
            return [Credential(c.site, c.user, c.password) for c in self.session.credentials]

    # ------------------------------------------------------------------
    # Startup, selection, unlock, lock
    # ------------------------------------------------------------------

    def start(self) -> StartupStatus:
        """Load whatever the backend can provide without prompting and stage it."""
        if self.session.is_unlocked:
            return StartupStatus(True, self.backend_name, self.notice)

        error = None
        document = None
        if self.backend is not None:
            try:
                document = self._parse(self.backend.restore())
            except PermissionDeniedError as e:
                logger.info("Stored vault needs re-selection: %s", e)
            except StorageError as e:
                logger.error("Could not load stored vault: %s", e)
                error = str(e)

        self.session.stage(document)
        return StartupStatus(document is not None, self.backend_name, self.notice, error)

    def select_existing_vault(self) -> bool:
        """User-gesture: pick an existing vault. Returns False if nothing was staged."""
        if self.backend is None:
            raise BackendUnavailableError("No storage backend is available")
        data = self.backend.select_existing()
        if data is None:
            return False
        document = self._parse(data)
        self.session.stage(document)
        logger.info("Vault staged from %s", self.backend.location)
        return True

    def grant_access(self) -> bool:
        """User-gesture: re-authorize a remembered vault file and stage it."""
        reauthorize = getattr(self.backend, "reauthorize", None)
        if reauthorize is None:
            return False
        data = reauthorize()
        if data is None:
            return False
        self.session.stage(self._parse(data))
        return True

    def unlock(self, password: str) -> bool:
        """Unlock the staged vault, or create a new one if nothing is stored.

        Returns True when a new vault was created. Storage failures while
        creating it abort the unlock and leave the session locked.
        """
        if not password:
            raise EmptyInputError("Please enter your master password")

        if (
            self.session.state is VaultState.LOCKED
            and self.session.staged_document is None
            and self.backend is not None
            and self.backend.has_target
        ):
            # Pick up a document written since startup rather than overwrite it.
            self.session.stage(self._parse(self.backend.read()))

        created = self.session.unlock(password)
        if created:
            try:
                self.save()
            except StorageError:
                self.session.lock()
                raise
        elif self.session.upgraded_from_legacy:
            logger.info("Legacy vault format detected; it will be upgraded on the next save")
        return created

    def lock(self) -> StartupStatus:
        """Flush pending changes, wipe secrets, release the storage handle.

        A failed flush raises and leaves the vault unlocked with edits intact.
        """
        self._flush()
        with self._state_lock:
            self.session.lock()
        if self.backend is not None:
            self.backend.forget()
        return self.start()

    def close(self) -> None:
        """Flush and wipe secrets on exit.

        Unlike :meth:`lock` the storage handle stays remembered, so the next
        run can reopen the vault without asking for the file again.
        """
        self._flush()
        with self._state_lock:
            self.session.lock()

    def discard(self) -> None:
        """Wipe secrets without saving. The storage handle is kept."""
        with self._state_lock:
            self.session.lock()

    def _flush(self) -> None:
        if not self.session.is_unlocked:
            return
        with self._state_lock:
            pending = bool(self.session.information or self.session.credentials)
        if not pending:
            return
        result = self.save()
        if not result.persisted and self.backend is not None:
            raise UnsavedChangesError("Changes were not saved: no vault location chosen")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> SaveResult:
        self.session.require_unlocked()
        with self._save_lock:
            document = self._seal()
            return self._write(document)

    def export_snapshot(self) -> ExportResult:
        """Save to the primary backend, then write a dated backup copy.

        A failed backup is reported in the result; the primary save stands.
        """
        self.session.require_unlocked()
        with self._save_lock:
            document = self._seal()
            saved = self._write(document)

        backup_path = self.export_dir / BACKUP_NAME_TEMPLATE.format(date=self._today().isoformat())
        try:
            self.export_dir.mkdir(parents=True, exist_ok=True)
            backup_path.write_bytes(document.to_json(indent=2))
        except OSError as e:
            logger.error("Backup export failed: %s", e)
            return ExportResult(saved, None, str(e))
        logger.info("Vault exported to %s", backup_path)
        return ExportResult(saved, backup_path)

    def _seal(self) -> VaultDocument:
        with self._state_lock:
            self.session.require_unlocked()
            information = list(self.session.information)
            credentials = list(self.session.credentials)
            master_key = self.session.master_key
        return seal_document(information, credentials, master_key)

    def _write(self, document: VaultDocument) -> SaveResult:
        if self.backend is None:
            logger.debug("Memory-only mode; vault not persisted")
            return SaveResult(False)
        location = self.backend.write(document.to_json())
        if location is None:
            logger.info("Save skipped; no vault location chosen")
            return SaveResult(False)
        logger.info("Vault saved to %s", location)
        return SaveResult(True, location)

    @staticmethod
    def _parse(data: Optional[bytes]) -> Optional[VaultDocument]:
        if data is None:
            return None
        return VaultDocument.from_json(data)

    # ------------------------------------------------------------------
    # Information
    # ------------------------------------------------------------------

    def add_information(self, name: str, value: str) -> SaveResult:
        self.session.require_unlocked()
        _require_fields(name, value)
        with self._state_lock:
            items = self.session.information
            for pos, item in enumerate(items):
                if item.name == name:
                    items[pos] = InformationItem(name, value)
                    break
            else:
                items.append(InformationItem(name, value))
        return self.save()

    def update_information(self, index: int, item: InformationItem) -> SaveResult:
        self.session.require_unlocked()
        _require_fields(item.name, item.value)
        with self._state_lock:
            items = self.session.information
            self._check_index(index, items)
            items[index] = InformationItem(item.name, item.value)
            # Names are unique; the item just written wins.
            items[:] = [i for pos, i in enumerate(items) if pos == index or i.name != item.name]
        return self.save()

    def delete_information(self, index: int) -> SaveResult:
        self.session.require_unlocked()
        with self._state_lock:
            items = self.session.information
            self._check_index(index, items)
            del items[index]
        return self.save()

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def add_credential(self, site: str, user: str, password: str) -> SaveResult:
        self.session.require_unlocked()
        _require_fields(site, user, password)
        with self._state_lock:
            self.session.credentials.append(Credential(site, user, password))
        return self.save()

    def update_credential(self, index: int, credential: Credential) -> SaveResult:
        self.session.require_unlocked()
        _require_fields(credential.site, credential.user, credential.password)
        with self._state_lock:
            creds = self.session.credentials
            self._check_index(index, creds)
            creds[index] = Credential(credential.site, credential.user, credential.password)
        return self.save()

    def delete_credential(self, index: int) -> SaveResult:
        self.session.require_unlocked()
        with self._state_lock:
            creds = self.session.credentials
            self._check_index(index, creds)
            del creds[index]
        return self.save()

    @staticmethod
    def _check_index(index: int, items: list) -> None:
        if not isinstance(index, int) or index < 0 or index >= len(items):
            raise InvalidIndexError(f"No item at position {index}")
