"""Shared fixtures: Argon2 costs small enough to keep the suite fast."""

import pytest

from lockbox.security.kdf import KdfParams


@pytest.fixture
def fast_kdf():
    """KDF template with minimal costs; salt is filled per vault."""
    return KdfParams(salt=b"", time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def fast_params(fast_kdf):
    return fast_kdf.with_new_salt()
