import hashlib
import hmac
import os
from dataclasses import dataclass
from typing import Dict

from argon2.low_level import Type, hash_secret_raw

VERIFIER_LABEL = b"lockbox-master-hash"

# Upper bounds for costs read from a stored document (memory is in KiB).
MAX_TIME_COST = 16
MAX_MEMORY_COST = 1 << 20
MAX_PARALLELISM = 16


@dataclass(frozen=True)
class KdfParams:
    """Argon2id parameters stored alongside a vault document."""

    salt: bytes
    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 1

    def with_new_salt(self) -> "KdfParams":
        return KdfParams(
            salt=generate_salt(),
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
        )


class MasterKey:
    """Derived master key plus the parameters needed to re-seal a document.

    The key lives in a mutable buffer so :meth:`wipe` can overwrite it.
    """

    __slots__ = ("_key", "params", "verifier")

    def __init__(self, key: bytes, params: KdfParams):
        self._key = bytearray(key)
        self.params = params
        self.verifier = make_verifier(self._key)

    @classmethod
    def derive(cls, password: bytes | str, params: KdfParams) -> "MasterKey":
        return cls(derive_from_params(password, params), params)

    @property
    def key(self) -> bytes:
        if not self._key:
            raise RuntimeError("Master key has been wiped")
        return bytes(self._key)

    @property
    def wiped(self) -> bool:
        return not self._key

    def wipe(self) -> None:
        # best-effort overwrite before dropping the buffer
        for i in range(len(self._key)):
            self._key[i] = 0
        self._key = bytearray()
        self.verifier = ""

    def __repr__(self):
        return f"MasterKey(wiped={self.wiped})"


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return os.urandom(length)


def derive_master_key(
    password: bytes,
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = 32,
) -> bytes:
    """
    Derive a master key from a password using Argon2id.
    Returns raw derived key bytes.
    """
    if isinstance(password, str):
        password = password.encode("utf-8")

    return hash_secret_raw(
        secret=password,
        salt=salt,
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )


def derive_from_params(password: bytes | str, params: KdfParams) -> bytes:
    return derive_master_key(
        password,
        params.salt,
        time_cost=params.time_cost,
        memory_cost=params.memory_cost,
        parallelism=params.parallelism,
    )


def make_verifier(master_key: bytes) -> str:
    """Return the hex verification digest stored as ``masterHash``.

    The digest is keyed by the derived master key, so it inherits the salt and
    cost of the Argon2id step and reveals nothing usable for decryption.
    """
    return hmac.new(bytes(master_key), VERIFIER_LABEL, hashlib.sha256).hexdigest()


def check_verifier(master_key: bytes, expected: str) -> bool:
    return hmac.compare_digest(make_verifier(master_key), expected or "")


def kdf_params_to_dict(salt: bytes, time_cost: int, memory_cost: int, parallelism: int) -> Dict:
    return {
        "algo": "argon2id",
        "salt": salt.hex(),
        "time": time_cost,
        "memory": memory_cost,
        "parallelism": parallelism,
    }


def kdf_params_from_dict(data: Dict) -> KdfParams:
    """Parse the ``kdf`` block of a stored document.

    Raises ``ValueError`` for an unknown algorithm or malformed fields,
    including costs outside the accepted range.
    """
    algo = data.get("algo", "argon2id")
    if algo != "argon2id":
        raise ValueError(f"Unsupported key derivation algorithm: {algo}")
    params = KdfParams(
        salt=bytes.fromhex(data["salt"]),
        time_cost=int(data.get("time", 3)),
        memory_cost=int(data.get("memory", 65536)),
        parallelism=int(data.get("parallelism", 1)),
    )
    if not 1 <= params.time_cost <= MAX_TIME_COST:
        raise ValueError(f"time cost out of range: {params.time_cost}")
    if not 1 <= params.parallelism <= MAX_PARALLELISM:
        raise ValueError(f"parallelism out of range: {params.parallelism}")
    if not 8 * params.parallelism <= params.memory_cost <= MAX_MEMORY_COST:
        raise ValueError(f"memory cost out of range: {params.memory_cost}")
    return params
