"""In-memory vault session: the locked/unlocked state machine.

The session is the only owner of the master key. It starts ``LOCKED``; a
document read from storage can be staged while locked and is verified when a
password is submitted. During verification the session is ``UNLOCKING``; any
failure returns it to ``LOCKED`` with nothing decrypted kept in memory.

The master key exists if and only if the session is ``UNLOCKED``. Locking
overwrites the key buffer and drops both plaintext collections.
"""
from __future__ import annotations

import hmac
import logging
from enum import Enum
from typing import List, Optional

from ..core.codec import open_document
from ..core.exceptions import EmptyInputError, LockBoxError, VaultLockedError, WrongPasswordError
from ..core.models import Credential, InformationItem, VaultDocument
from .crypto import hash_password
from .kdf import KdfParams, MasterKey, check_verifier

logger = logging.getLogger(__name__)


class VaultState(Enum):
    LOCKED = "locked"
    UNLOCKING = "unlocking"
    UNLOCKED = "unlocked"


class VaultSession:
    def __init__(self, kdf_template: Optional[KdfParams] = None):
        # Costs used when a fresh salt is needed (new vault or legacy upgrade).
        self.kdf_template = kdf_template or KdfParams(salt=b"")
        self._state = VaultState.LOCKED
        self._master_key: Optional[MasterKey] = None
        self._information: List[InformationItem] = []
        self._credentials: List[Credential] = []
        self._staged: Optional[VaultDocument] = None
        self._upgraded_from_legacy = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> VaultState:
        return self._state

    @property
    def is_unlocked(self) -> bool:
        return self._state is VaultState.UNLOCKED

    @property
    def master_key(self) -> MasterKey:
        """Return the unlocked master key or raise if locked."""
        if self._state is not VaultState.UNLOCKED or self._master_key is None:
            raise VaultLockedError("Vault is locked")
        return self._master_key

    @property
    def has_master_key(self) -> bool:
        return self._master_key is not None

    @property
    def information(self) -> List[InformationItem]:
        # Live list while unlocked; mutate only through the repository.
        return self._information

    @property
    def credentials(self) -> List[Credential]:
        return self._credentials

    @property
    def staged_document(self) -> Optional[VaultDocument]:
        return self._staged

    @property
    def upgraded_from_legacy(self) -> bool:
        return self._upgraded_from_legacy

    def require_unlocked(self) -> None:
        if self._state is not VaultState.UNLOCKED:
            raise VaultLockedError("Vault is locked")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def stage(self, document: Optional[VaultDocument]) -> None:
        """Hold a not-yet-verified document until a password is submitted."""
        if self._state is not VaultState.LOCKED:
            raise LockBoxError(f"Cannot stage a document while {self._state.value}")
        self._staged = document

    def unlock(self, password: str) -> bool:
        """Verify ``password`` against the staged document and unlock.

        Returns True when a new, empty vault was created because nothing was
        staged. Raises ``WrongPasswordError`` on mismatch; the staged document
        is kept so the user can retry.
        """
        if not password:
            raise EmptyInputError("Please enter your master password")
        if self._state is not VaultState.LOCKED:
            raise LockBoxError(f"Cannot unlock while {self._state.value}")

        self._state = VaultState.UNLOCKING
        document = self._staged
        try:
            if document is None:
                master_key = MasterKey.derive(password, self._fresh_params())
                information, credentials = [], []
            elif document.is_legacy:
                if not hmac.compare_digest(hash_password(password), document.master_hash):
                    raise WrongPasswordError("Incorrect master password")
                information, credentials = open_document(document, password)
                # Re-key with a salted derivation; the next save writes the new format.
                master_key = MasterKey.derive(password, self._fresh_params())
            else:
                master_key = MasterKey.derive(password, document.kdf)
                if not check_verifier(master_key.key, document.master_hash):
                    master_key.wipe()
                    raise WrongPasswordError("Incorrect master password")
                information, credentials = open_document(document, master_key.key)
        except BaseException:
            self._state = VaultState.LOCKED
            raise

        self._master_key = master_key
        self._information = information
        self._credentials = credentials
        self._upgraded_from_legacy = document is not None and document.is_legacy
        self._staged = None
        self._state = VaultState.UNLOCKED
        logger.info(
            "Vault unlocked (%s, %d information item(s), %d credential(s))",
            "new" if document is None else ("legacy" if document.is_legacy else "existing"),
            len(information),
            len(credentials),
        )
        return document is None

    def lock(self) -> None:
        """Wipe the master key and all plaintext, and return to LOCKED."""
        try:
            if self._master_key is not None:
                self._master_key.wipe()
        finally:
            self._master_key = None
            self._information = []
            self._credentials = []
            self._staged = None
            self._upgraded_from_legacy = False
            if self._state is not VaultState.LOCKED:
                logger.info("Vault locked")
            self._state = VaultState.LOCKED

    def _fresh_params(self) -> KdfParams:
        return self.kdf_template.with_new_salt()


# module-level default session
_default_session = VaultSession()


def get_session() -> VaultSession:
    return _default_session


def lock() -> None:
    get_session().lock()
