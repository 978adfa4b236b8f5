"""
Data models for the vault: plaintext items held in memory and the
encrypted document written to storage.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..security.kdf import KdfParams, kdf_params_from_dict, kdf_params_to_dict
from .exceptions import CorruptDocumentError


@dataclass
class InformationItem:
    # name is the unique key inside a vault
    name: str
    value: str


@dataclass
class Credential:
    # duplicates per site are allowed; identified by position only
    site: str
    user: str
    password: str


@dataclass
class EncryptedCredential:
    site: str
    user: str
    password: str

    def to_dict(self) -> Dict[str, str]:
        return {"site": self.site, "user": self.user, "pass": self.password}


@dataclass
class VaultDocument:
    """The durable, encrypted form of a vault.

    ``information`` maps item name to ciphertext and keeps insertion order.
    ``credentials`` keep ``site`` in plaintext as a label. ``kdf`` is absent
    for documents written by earlier versions (legacy format).
    """

    master_hash: str
    information: Dict[str, str] = field(default_factory=dict)
    credentials: List[EncryptedCredential] = field(default_factory=list)
    kdf: Optional[KdfParams] = None

    @property
    def is_legacy(self) -> bool:
        return self.kdf is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"masterHash": self.master_hash}
        if self.kdf is not None:
            data["kdf"] = kdf_params_to_dict(
                self.kdf.salt,
                self.kdf.time_cost,
                self.kdf.memory_cost,
                self.kdf.parallelism,
            )
        data["information"] = dict(self.information)
        data["credentials"] = [c.to_dict() for c in self.credentials]
        return data

    def to_json(self, indent: Optional[int] = 2) -> bytes:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False).encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VaultDocument":
        if not isinstance(data, dict):
            raise CorruptDocumentError("Vault document must be a JSON object")
        master_hash = data.get("masterHash")
        if not isinstance(master_hash, str) or not master_hash:
            raise CorruptDocumentError("Vault document has no masterHash")

        information = data.get("information") or {}
        if not isinstance(information, dict):
            raise CorruptDocumentError("'information' must be an object")

        credentials = []
        for entry in data.get("credentials") or []:
            if not isinstance(entry, dict):
                raise CorruptDocumentError("credential entries must be objects")
            credentials.append(
                EncryptedCredential(
                    site=str(entry.get("site", "")),
                    user=str(entry.get("user", "")),
                    password=str(entry.get("pass", "")),
                )
            )

        kdf = None
        if data.get("kdf") is not None:
            try:
                kdf = kdf_params_from_dict(data["kdf"])
            except (KeyError, TypeError, ValueError) as e:
                raise CorruptDocumentError(f"Invalid kdf block: {e}")

        return cls(
            master_hash=master_hash,
            information={str(k): str(v) for k, v in information.items()},
            credentials=credentials,
            kdf=kdf,
        )

    @classmethod
    def from_json(cls, raw: bytes | str) -> "VaultDocument":
        if isinstance(raw, bytes):
            try:
                raw = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise CorruptDocumentError(f"Vault document is not UTF-8: {e}")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptDocumentError(f"Vault document is not valid JSON: {e}")
        return cls.from_dict(data)
