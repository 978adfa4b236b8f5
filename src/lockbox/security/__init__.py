"""Security helpers: key derivation and field encryption primitives for LockBox.

This package provides:
- Argon2id-based master key derivation and the salted verification digest
- per-field AES-GCM encryption with graceful decryption failure
- read support for fields written in the legacy OpenSSL envelope format

The session state machine lives in :mod:`lockbox.security.session` and the
keyring adapter in :mod:`lockbox.security.keystore`; both are imported from
their modules directly.
"""

from .kdf import KdfParams, MasterKey, generate_salt, derive_master_key
from .crypto import (
    DECRYPTION_FAILED,
    DecryptionFailed,
    decrypt,
    encrypt,
    hash_password,
    is_decryption_failure,
)

__all__ = [
    "KdfParams",
    "MasterKey",
    "generate_salt",
    "derive_master_key",
    "DECRYPTION_FAILED",
    "DecryptionFailed",
    "decrypt",
    "encrypt",
    "hash_password",
    "is_decryption_failure",
]
