"""Runtime configuration, read from ``LOCKBOX_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from ..security.kdf import MAX_MEMORY_COST, MAX_PARALLELISM, MAX_TIME_COST, KdfParams

BACKEND_CHOICES = ("auto", "file", "kv")
KV_STORE_CHOICES = ("sqlite", "keyring")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"Not a boolean value: {value!r}")


def _as_int(value: Optional[str], default: int, minimum: int = 0, maximum: Optional[int] = None) -> int:
    if value is None or not value.strip():
        return default
    number = int(value)
    if number < minimum:
        raise ValueError(f"Value {number} is below the minimum of {minimum}")
    if maximum is not None and number > maximum:
        raise ValueError(f"Value {number} is above the maximum of {maximum}")
    return number


def _choice(value: Optional[str], default: str, choices) -> str:
    if value is None or not value.strip():
        return default
    value = value.strip().lower()
    if value not in choices:
        raise ValueError(f"Expected one of {', '.join(choices)}, got {value!r}")
    return value


@dataclass
class LockBoxSettings:
    home: Path = field(default_factory=lambda: Path.home() / ".lockbox")
    backend: str = "auto"
    kv_store: str = "sqlite"
    export_dir: Path = field(default_factory=Path.cwd)
    remember_permission: bool = True
    kdf_time_cost: int = 3
    kdf_memory_cost: int = 65536
    kdf_parallelism: int = 1
    log_level: int = logging.INFO
    clipboard_clear_seconds: int = 30

    @property
    def db_path(self) -> Path:
        return self.home / "state.db"

    @property
    def kdf_template(self) -> KdfParams:
        # Salt is filled in per vault.
        return KdfParams(
            salt=b"",
            time_cost=self.kdf_time_cost,
            memory_cost=self.kdf_memory_cost,
            parallelism=self.kdf_parallelism,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LockBoxSettings":
        """Build settings from ``environ`` (defaults to ``os.environ``).

        Raises ``ValueError`` naming the offending variable on bad input.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def read(name, parse):
            try:
                return parse(env.get(name))
            except ValueError as e:
                raise ValueError(f"{name}: {e}")

        home = env.get("LOCKBOX_HOME")
        export_dir = env.get("LOCKBOX_EXPORT_DIR")
        level_name = (env.get("LOCKBOX_LOG_LEVEL") or "").strip().upper()
        log_level = defaults.log_level
        if level_name:
            log_level = logging.getLevelName(level_name)
            if not isinstance(log_level, int):
                raise ValueError(f"LOCKBOX_LOG_LEVEL: unknown level {level_name!r}")

        return cls(
            home=Path(home).expanduser() if home else defaults.home,
            backend=read("LOCKBOX_BACKEND", lambda v: _choice(v, defaults.backend, BACKEND_CHOICES)),
            kv_store=read("LOCKBOX_KV_STORE", lambda v: _choice(v, defaults.kv_store, KV_STORE_CHOICES)),
            export_dir=Path(export_dir).expanduser() if export_dir else defaults.export_dir,
            remember_permission=read(
                "LOCKBOX_REMEMBER_PERMISSION", lambda v: _as_bool(v, defaults.remember_permission)
            ),
            kdf_time_cost=read("LOCKBOX_KDF_TIME", lambda v: _as_int(v, defaults.kdf_time_cost, 1, MAX_TIME_COST)),
            kdf_memory_cost=read("LOCKBOX_KDF_MEMORY", lambda v: _as_int(v, defaults.kdf_memory_cost, 8, MAX_MEMORY_COST)),
            kdf_parallelism=read("LOCKBOX_KDF_PARALLELISM", lambda v: _as_int(v, defaults.kdf_parallelism, 1, MAX_PARALLELISM)),
            log_level=log_level,
            clipboard_clear_seconds=read(
                "LOCKBOX_CLIPBOARD_CLEAR_SECONDS", lambda v: _as_int(v, defaults.clipboard_clear_seconds, 0)
            ),
        )
