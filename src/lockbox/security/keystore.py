"""OS keystore integration using keyring, used as a fallback store.

The fallback key-value backend can keep the encrypted vault document in the
OS keystore instead of the local SQLite file. Values are base64-encoded
before storage to keep them string-friendly. Do not assume keyring provides
hardware-backed security on all platforms; the document is encrypted anyway.
"""
import base64
import binascii
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError


def save_secret(service: str, account: str, data: bytes) -> None:
    """Persist ``data`` in the OS keystore under (service, account)."""
    secret = base64.b64encode(data).decode("ascii")
    keyring.set_password(service, account, secret)


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_usable, message) describing the current keyring backend.

    Heuristics are used because the `keyring` package exposes different backends
    across platforms.
    """
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    if "fail" in name.lower() or "null" in name.lower():
        return False, f"no keyring backend available: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable keyring backend available (priority={priority}, backend={name})"

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File")
    if any(tok in name for tok in insecure_indicators):
        return True, f"plaintext keyring backend: {name}"

    return True, f"backend looks acceptable: {name} (priority={priority})"


def load_secret(service: str, account: str) -> Optional[bytes]:
    """Load a persisted value from the OS keystore; returns raw bytes or None."""
    secret = keyring.get_password(service, account)
    if secret is None:
        return None
    try:
        return base64.b64decode(secret)
    except (binascii.Error, ValueError):
        return None


def delete_secret(service: str, account: str) -> None:
    """Remove the value from the OS keystore; missing entries are ignored."""
    try:
        keyring.delete_password(service, account)
    except PasswordDeleteError:
        pass


__all__ = [
    "KeyringError",
    "assess_keyring_backend",
    "save_secret",
    "load_secret",
    "delete_secret",
]
