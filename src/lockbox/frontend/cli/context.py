"""Small helper to build a LockBox app context for the TUI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from lockbox.core.settings import LockBoxSettings
from lockbox.core.vault import StartupStatus, VaultRepository
from lockbox.database.connection import DatabaseConnection
from lockbox.storage.backend import PresetPicker


@dataclass
class AppContext:
    """Container for runtime objects the UI needs."""

    settings: LockBoxSettings
    repository: VaultRepository
    picker: PresetPicker
    db: DatabaseConnection
    startup: Optional[StartupStatus] = None


def build_context(settings: Optional[LockBoxSettings] = None) -> AppContext:
    """
    Read settings, pick a storage backend and load any stored vault.

    The UI collects file paths and access confirmations in its own dialogs,
    then presets them on the returned ``picker`` right before calling the
    repository command that needs them.
    """
    settings = settings or LockBoxSettings.from_env()
    db = DatabaseConnection(settings.db_path)
    picker = PresetPicker()
    repository = VaultRepository.from_settings(settings, picker=picker, db=db)
    startup = repository.start()
    return AppContext(
        settings=settings,
        repository=repository,
        picker=picker,
        db=db,
        startup=startup,
    )
