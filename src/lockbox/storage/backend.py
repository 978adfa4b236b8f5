"""
Persistence backend interface for the encrypted vault document.

Two variants implement it:

 - FileHandleBackend: a single vault file the user picks once; the backend
   keeps a handle to it (optionally remembered across restarts)
 - KeyValueBackend: a fixed-key store used when no file picker exists

Backends only ever see encrypted document bytes. Operations that stand in for
a user gesture (choosing a file, granting access) go through a FilePicker and
resolve to None when the user cancels.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from ..core.exceptions import UserCancelledError

logger = logging.getLogger(__name__)


class Permission(Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


@dataclass
class FileHandle:
    # Created and mutated only by FileHandleBackend.
    path: Path
    granted: bool = False


class FilePicker(Protocol):
    """User-gesture surface supplied by the UI layer."""

    def choose_existing(self) -> Optional[Path]:
        ...

    def choose_new(self, suggested_name: str) -> Optional[Path]:
        ...

    def confirm_access(self, path: Path) -> bool:
        ...


class PresetPicker:
    """Picker that answers from values the UI collected just before the call.

    Each preset answer is consumed by the first call that reads it, so a
    stale choice can never be replayed. With nothing preset every call acts
    as a cancelled dialog.
    """

    def __init__(
        self,
        existing: Optional[Path] = None,
        new: Optional[Path] = None,
        confirm: bool = False,
    ):
        self._existing = Path(existing) if existing else None
        self._new = Path(new) if new else None
        self._confirm = confirm

    def preset_existing(self, path) -> None:
        self._existing = Path(path).expanduser()

    def preset_new(self, path) -> None:
        self._new = Path(path).expanduser()

    def preset_confirm(self, confirm: bool = True) -> None:
        self._confirm = confirm

    def choose_existing(self) -> Optional[Path]:
        path, self._existing = self._existing, None
        if path is None:
            raise UserCancelledError("No vault file chosen")
        return path

    def choose_new(self, suggested_name: str) -> Optional[Path]:
        path, self._new = self._new, None
        if path is None:
            raise UserCancelledError("No location chosen for a new vault file")
        if path.is_dir():
            path = path / suggested_name
        return path

    def confirm_access(self, path: Path) -> bool:
        confirm, self._confirm = self._confirm, False
        return confirm


class VaultBackend(ABC):
    """Durable storage for one encrypted vault document."""

    name = "backend"

    @abstractmethod
    def probe_support(self) -> bool:
        """Return True when this storage mechanism is usable on the host."""

    @abstractmethod
    def restore(self) -> Optional[bytes]:
        """Load the document known from a previous run without prompting."""

    @abstractmethod
    def select_existing(self) -> Optional[bytes]:
        """User-gesture path to pick an existing vault; None if cancelled."""

    @abstractmethod
    def read(self) -> Optional[bytes]:
        """Read the current target; None when there is nothing to read."""

    @abstractmethod
    def write(self, data: bytes) -> Optional[str]:
        """Write ``data`` in full; return a location label, None if cancelled."""

    @abstractmethod
    def forget(self) -> None:
        """Release the retained target and purge transient caches."""

    @property
    def has_target(self) -> bool:
        return True

    @property
    def location(self) -> Optional[str]:
        return None

    def __repr__(self):
        return f"{type(self).__name__}(location={self.location!r})"
