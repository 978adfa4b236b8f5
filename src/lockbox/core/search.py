"""Case-insensitive filtering over the plaintext collections.

Results keep each item's position in the full collection so callers can
pass it straight to update/delete.
"""

from typing import Iterable, List, Tuple

from .models import Credential, InformationItem


def _normalize(term: str) -> str:
    return (term or "").strip().lower()


def filter_information(
    items: Iterable[InformationItem], term: str
) -> List[Tuple[int, InformationItem]]:
    """Match on name or value."""
    needle = _normalize(term)
    return [
        (idx, item)
        for idx, item in enumerate(items)
        if not needle or needle in item.name.lower() or needle in item.value.lower()
    ]


def filter_credentials(
    credentials: Iterable[Credential], term: str
) -> List[Tuple[int, Credential]]:
    """Match on site or user; passwords are never searched."""
    needle = _normalize(term)
    return [
        (idx, cred)
        for idx, cred in enumerate(credentials)
        if not needle or needle in cred.site.lower() or needle in cred.user.lower()
    ]
