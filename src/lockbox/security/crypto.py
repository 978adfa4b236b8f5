"""Field-level encryption for vault documents.

Every encrypted field is a self-contained ASCII string:

- current format: base64(nonce || AES-256-GCM ciphertext+tag), 12-byte random nonce
- legacy format: OpenSSL "Salted__" envelope (EVP_BytesToKey/MD5, AES-256-CBC,
  PKCS#7) as written by earlier versions of the vault; read-only

Decryption never raises on bad input. A field that cannot be decrypted comes
back as ``DECRYPTION_FAILED`` so one damaged value does not hide the rest of
the vault.
"""
import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

NONCE_SIZE = 12
LEGACY_MAGIC = b"Salted__"
# base64 of b"Salted__"
LEGACY_PREFIX = "U2FsdGVkX1"


class DecryptionFailed(str):
    """Placeholder returned in place of a value that failed to decrypt."""

    __slots__ = ()


DECRYPTION_FAILED = DecryptionFailed("[Decryption Failed]")


def is_decryption_failure(value) -> bool:
    return isinstance(value, DecryptionFailed)


def hash_password(password: str) -> str:
    """Unsalted SHA-256 hex digest used to verify legacy documents."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _key_bytes(key: bytes | bytearray | str) -> bytes:
    if isinstance(key, str):
        key = key.encode("utf-8")
    return bytes(key)


def _derive_field_key(key: bytes | bytearray | str, info: bytes = b"lockbox-field") -> bytes:
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=info)
    return hkdf.derive(_key_bytes(key))


def encrypt(plaintext: str, key: bytes | bytearray | str) -> str:
    """Encrypt ``plaintext`` under ``key``; a fresh nonce is used on every call."""
    if not key:
        raise ValueError("Encryption key must not be empty")
    aead = AESGCM(_derive_field_key(key))
    nonce = os.urandom(NONCE_SIZE)
    ct = aead.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ct).decode("ascii")


def is_legacy_ciphertext(ciphertext: str) -> bool:
    return isinstance(ciphertext, str) and ciphertext.startswith(LEGACY_PREFIX)


def decrypt(ciphertext: str, key: bytes | bytearray | str) -> str:
    """Inverse of :func:`encrypt`; returns ``DECRYPTION_FAILED`` instead of raising.

    Legacy "Salted__" ciphertexts are routed to :func:`decrypt_legacy` with the
    key treated as the password.
    """
    if not key or not isinstance(ciphertext, str):
        return DECRYPTION_FAILED
    if is_legacy_ciphertext(ciphertext):
        return decrypt_legacy(ciphertext, _key_bytes(key).decode("utf-8", "replace"))
    try:
        blob = base64.b64decode(ciphertext, validate=True)
    except (binascii.Error, ValueError):
        return DECRYPTION_FAILED
    if len(blob) <= NONCE_SIZE:
        return DECRYPTION_FAILED
    nonce, ct = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
    try:
        pt = AESGCM(_derive_field_key(key)).decrypt(nonce, ct, None)
        return pt.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError):
        return DECRYPTION_FAILED


def evp_bytes_to_key(password: bytes, salt: bytes, key_len: int = 32, iv_len: int = 16):
    # OpenSSL EVP_BytesToKey with MD5 and a single iteration.
    derived = b""
    block = b""
    while len(derived) < key_len + iv_len:
        block = hashlib.md5(block + password + salt).digest()
        derived += block
    return derived[:key_len], derived[key_len:key_len + iv_len]


def decrypt_legacy(ciphertext: str, password: str) -> str:
    """Decrypt a legacy OpenSSL-envelope field written by earlier vault versions."""
    try:
        blob = base64.b64decode(ciphertext, validate=True)
    except (binascii.Error, ValueError):
        return DECRYPTION_FAILED
    if len(blob) < 32 or not blob.startswith(LEGACY_MAGIC) or (len(blob) - 16) % 16:
        return DECRYPTION_FAILED

    salt, body = blob[8:16], blob[16:]
    key, iv = evp_bytes_to_key(password.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(body) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    try:
        raw = unpadder.update(padded) + unpadder.finalize()
        return raw.decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return DECRYPTION_FAILED
