"""Seal and open vault documents.

Sealing always produces a brand-new document from the full plaintext model;
there is no incremental form. Opening decrypts field by field and keeps
going past fields that fail, substituting the DECRYPTION_FAILED placeholder.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from ..security.crypto import decrypt, encrypt, is_decryption_failure
from ..security.kdf import MasterKey
from .models import Credential, EncryptedCredential, InformationItem, VaultDocument

logger = logging.getLogger(__name__)


def seal_document(
    information: Iterable[InformationItem],
    credentials: Iterable[Credential],
    master_key: MasterKey,
) -> VaultDocument:
    key = master_key.key
    document = VaultDocument(master_hash=master_key.verifier, kdf=master_key.params)
    for item in information:
        document.information[item.name] = encrypt(item.value, key)
    for cred in credentials:
        document.credentials.append(
            EncryptedCredential(
                site=cred.site,
                user=encrypt(cred.user, key),
                password=encrypt(cred.password, key),
            )
        )
    return document


def open_document(
    document: VaultDocument, key: bytes | str
) -> Tuple[List[InformationItem], List[Credential]]:
    """Decrypt every field of ``document``.

    ``key`` is the derived master key for current documents and the master
    password for legacy ones.
    """
    information = [
        InformationItem(name=name, value=decrypt(ct, key))
        for name, ct in document.information.items()
    ]
    credentials = [
        Credential(
            site=c.site,
            user=decrypt(c.user, key),
            password=decrypt(c.password, key),
        )
        for c in document.credentials
    ]

    failed = sum(1 for i in information if is_decryption_failure(i.value))
    failed += sum(
        is_decryption_failure(c.user) + is_decryption_failure(c.password)
        for c in credentials
    )
    if failed:
        logger.warning("%d vault field(s) could not be decrypted", failed)
    return information, credentials
