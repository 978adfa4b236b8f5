"""Unit tests for VaultRepository commands."""

import json
from datetime import date
from unittest.mock import MagicMock

import pytest

from lockbox.core.exceptions import (
    BackendUnavailableError,
    CorruptDocumentError,
    EmptyInputError,
    InvalidIndexError,
    IOFailureError,
    PermissionDeniedError,
    UnsavedChangesError,
    VaultLockedError,
    WrongPasswordError,
)
from lockbox.core.models import Credential, InformationItem, VaultDocument
from lockbox.core.vault import VaultRepository
from lockbox.security.session import VaultSession, VaultState
from lockbox.storage.kv_backend import DOCUMENT_KEY, KeyValueBackend, KeyValueStore


class MemoryStore(KeyValueStore):
    name = "memory"

    def __init__(self):
        self.data = {}

    def available(self):
        return True

    def get(self, key):
        return self.data.get(key)

    def put(self, key, value):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def repo(store, fast_kdf, tmp_path):
    return VaultRepository(
        KeyValueBackend(store),
        session=VaultSession(fast_kdf),
        export_dir=tmp_path / "exports",
        today=lambda: date(2024, 5, 17),
    )


@pytest.fixture
def unlocked(repo):
    repo.start()
    repo.unlock("pw")
    return repo


def stored_document(store) -> VaultDocument:
    return VaultDocument.from_json(store.data[DOCUMENT_KEY])


# ==============================================================================
# Tests: startup and unlock
# ==============================================================================

def test_start_with_empty_store(repo):
    status = repo.start()
    assert status.has_vault is False
    assert status.backend == "kv"
    assert status.error is None
    assert repo.state is VaultState.LOCKED


def test_first_unlock_creates_and_persists_vault(repo, store):
    repo.start()
    assert repo.unlock("pw") is True
    assert repo.is_unlocked
    doc = stored_document(store)
    assert doc.information == {}
    assert doc.credentials == []
    assert doc.kdf is not None


def test_unlock_existing_vault(unlocked, store, fast_kdf, tmp_path):
    unlocked.add_information("email", "me@example.com")
    fresh = VaultRepository(KeyValueBackend(store), session=VaultSession(fast_kdf))
    assert fresh.start().has_vault
    assert fresh.unlock("pw") is False
    assert fresh.information == [InformationItem("email", "me@example.com")]


def test_wrong_password_leaves_store_untouched(unlocked, store, fast_kdf):
    unlocked.add_credential("site", "user", "pass")
    before = store.data[DOCUMENT_KEY]
    other = VaultRepository(KeyValueBackend(store), session=VaultSession(fast_kdf))
    other.start()
    with pytest.raises(WrongPasswordError):
        other.unlock("wrong")
    assert store.data[DOCUMENT_KEY] == before
    assert other.has_vault
    assert other.information == []


def test_unlock_requires_password(repo):
    with pytest.raises(EmptyInputError):
        repo.unlock("")


def test_unlock_picks_up_document_written_after_start(repo, store, fast_kdf):
    repo.start()
    writer = VaultRepository(KeyValueBackend(store), session=VaultSession(fast_kdf))
    writer.start()
    writer.unlock("pw")
    writer.add_information("k", "v")

    # repo started before the vault existed; it must not overwrite it
    with pytest.raises(WrongPasswordError):
        repo.unlock("different")
    assert repo.unlock("pw") is False
    assert repo.information == [InformationItem("k", "v")]


def test_failed_create_leaves_session_locked(fast_kdf):
    backend = MagicMock()
    backend.restore.return_value = None
    backend.has_target = False
    backend.write.side_effect = IOFailureError("disk full")
    repo = VaultRepository(backend, session=VaultSession(fast_kdf))
    repo.start()
    with pytest.raises(IOFailureError):
        repo.unlock("pw")
    assert repo.state is VaultState.LOCKED


def test_start_reports_corrupt_document(repo, store):
    store.data[DOCUMENT_KEY] = b"not json"
    status = repo.start()
    assert status.has_vault is False
    assert "not valid JSON" in status.error


def test_start_permission_denied_is_quiet(fast_kdf):
    backend = MagicMock()
    backend.name = "file"
    backend.restore.side_effect = PermissionDeniedError("revoked")
    repo = VaultRepository(backend, session=VaultSession(fast_kdf))
    status = repo.start()
    assert status.has_vault is False
    assert status.error is None


def test_select_existing_vault(repo, store, fast_kdf):
    backend = MagicMock()
    backend.select_existing.return_value = None
    repo.backend = backend
    assert repo.select_existing_vault() is False

    backend.select_existing.return_value = b'{"masterHash": "h"}'
    assert repo.select_existing_vault() is True
    assert repo.has_vault


def test_select_existing_vault_rejects_garbage(repo):
    repo.backend = MagicMock()
    repo.backend.select_existing.return_value = b"garbage"
    with pytest.raises(CorruptDocumentError):
        repo.select_existing_vault()


def test_select_without_backend(fast_kdf):
    repo = VaultRepository(None, session=VaultSession(fast_kdf))
    with pytest.raises(BackendUnavailableError):
        repo.select_existing_vault()


def test_grant_access_only_for_file_backends(repo):
    # key-value backends have nothing to re-authorize
    assert repo.grant_access() is False
    repo.backend = MagicMock()
    repo.backend.reauthorize.return_value = b'{"masterHash": "h"}'
    assert repo.grant_access() is True
    assert repo.has_vault


# ==============================================================================
# Tests: locked state guards
# ==============================================================================

@pytest.mark.parametrize(
    "command, args",
    [
        ("add_information", ("n", "v")),
        ("update_information", (0, InformationItem("n", "v"))),
        ("delete_information", (0,)),
        ("add_credential", ("s", "u", "p")),
        ("update_credential", (0, Credential("s", "u", "p"))),
        ("delete_credential", (0,)),
        ("save", ()),
        ("export_snapshot", ()),
    ],
)
def test_commands_require_unlock(repo, command, args):
    repo.start()
    with pytest.raises(VaultLockedError):
        getattr(repo, command)(*args)


def test_collections_empty_while_locked(repo):
    assert repo.information == []
    assert repo.credentials == []


# ==============================================================================
# Tests: information
# ==============================================================================

def test_add_information_persists_encrypted(unlocked, store):
    result = unlocked.add_information("email", "me@example.com")
    assert result.persisted
    assert result.location == f"memory:{DOCUMENT_KEY}"
    doc = stored_document(store)
    assert list(doc.information) == ["email"]
    assert doc.information["email"] != "me@example.com"
    assert b"me@example.com" not in store.data[DOCUMENT_KEY]


def test_add_information_with_existing_name_overwrites(unlocked):
    unlocked.add_information("a", "1")
    unlocked.add_information("b", "2")
    unlocked.add_information("a", "3")
    assert unlocked.information == [InformationItem("a", "3"), InformationItem("b", "2")]


def test_overwrite_replaces_item_instead_of_mutating(unlocked):
    unlocked.add_information("a", "1")
    original = unlocked.session.information[0]
    unlocked.add_information("a", "2")
    # a snapshot taken for an in-flight save keeps its value
    assert original.value == "1"
    assert unlocked.session.information[0] is not original
    assert unlocked.information == [InformationItem("a", "2")]


@pytest.mark.parametrize("name, value", [("", "v"), ("n", ""), ("   ", "v")])
def test_add_information_rejects_empty(unlocked, store, name, value):
    before = store.data[DOCUMENT_KEY]
    with pytest.raises(EmptyInputError, match="Please fill in all fields"):
        unlocked.add_information(name, value)
    assert store.data[DOCUMENT_KEY] == before


def test_update_information_rename_collapses_duplicates(unlocked):
    unlocked.add_information("a", "1")
    unlocked.add_information("b", "2")
    unlocked.add_information("c", "3")
    unlocked.update_information(2, InformationItem("a", "new"))
    assert unlocked.information == [InformationItem("b", "2"), InformationItem("a", "new")]


def test_update_and_delete_information_bad_index(unlocked):
    unlocked.add_information("a", "1")
    with pytest.raises(InvalidIndexError):
        unlocked.update_information(5, InformationItem("x", "y"))
    with pytest.raises(IndexError):
        unlocked.delete_information(-1)
    assert unlocked.information == [InformationItem("a", "1")]


def test_delete_information_keeps_order(unlocked, store):
    for name in "abc":
        unlocked.add_information(name, name.upper())
    unlocked.delete_information(1)
    assert [i.name for i in unlocked.information] == ["a", "c"]
    assert list(stored_document(store).information) == ["a", "c"]


# ==============================================================================
# Tests: credentials
# ==============================================================================

def test_credentials_allow_duplicates_and_keep_site_plaintext(unlocked, store):
    unlocked.add_credential("example.com", "alice", "p1")
    unlocked.add_credential("example.com", "alice", "p2")
    assert len(unlocked.credentials) == 2
    entries = json.loads(store.data[DOCUMENT_KEY])["credentials"]
    assert [e["site"] for e in entries] == ["example.com", "example.com"]
    assert all(e["pass"] not in ("p1", "p2") for e in entries)


def test_update_credential_requires_all_fields(unlocked):
    unlocked.add_credential("s", "u", "p")
    with pytest.raises(EmptyInputError):
        unlocked.update_credential(0, Credential("s", "u", ""))
    unlocked.update_credential(0, Credential("s2", "u2", "p2"))
    assert unlocked.credentials == [Credential("s2", "u2", "p2")]


def test_delete_credential(unlocked):
    unlocked.add_credential("a", "u", "p")
    unlocked.add_credential("b", "u", "p")
    unlocked.delete_credential(0)
    assert [c.site for c in unlocked.credentials] == ["b"]
    with pytest.raises(InvalidIndexError):
        unlocked.delete_credential(1)


def test_returned_collections_are_copies(unlocked):
    unlocked.add_credential("a", "u", "p")
    unlocked.credentials[0].password = "changed"
    unlocked.information.append(InformationItem("x", "y"))
    assert unlocked.credentials[0].password == "p"
    assert unlocked.information == []


# ==============================================================================
# Tests: lock, save, export
# ==============================================================================

def test_lock_wipes_and_restages(unlocked, store):
    unlocked.add_information("a", "1")
    key = unlocked.session.master_key
    status = unlocked.lock()
    assert key.wiped
    assert unlocked.state is VaultState.LOCKED
    assert unlocked.information == []
    assert status.has_vault
    # the stored vault survives locking
    assert DOCUMENT_KEY in store.data


def test_lock_with_failed_flush_stays_unlocked(unlocked):
    unlocked.add_information("a", "1")
    unlocked.backend = MagicMock()
    unlocked.backend.write.side_effect = IOFailureError("disk full")
    with pytest.raises(IOFailureError):
        unlocked.lock()
    assert unlocked.is_unlocked
    assert unlocked.information == [InformationItem("a", "1")]


def test_memory_only_mode(fast_kdf):
    repo = VaultRepository(None, session=VaultSession(fast_kdf), notice="memory only")
    status = repo.start()
    assert repo.memory_only
    assert status.backend is None
    assert repo.unlock("pw") is True
    result = repo.add_information("a", "1")
    assert result.persisted is False
    assert repo.information == [InformationItem("a", "1")]


def test_save_skipped_when_no_location_chosen(unlocked):
    unlocked.backend = MagicMock()
    unlocked.backend.write.return_value = None
    result = unlocked.save()
    assert result.persisted is False
    assert result.location is None


def test_export_writes_dated_backup(unlocked, store, tmp_path):
    unlocked.add_information("a", "1")
    result = unlocked.export_snapshot()
    assert result.ok
    assert result.saved.persisted
    assert result.backup_path == tmp_path / "exports" / "vault-backup-2024-05-17.json"
    backup = result.backup_path.read_bytes()
    assert backup.startswith(b'{\n  "masterHash"')
    assert VaultDocument.from_json(backup).master_hash == stored_document(store).master_hash


def test_export_backup_failure_keeps_primary_save(unlocked, store, tmp_path):
    blocker = tmp_path / "exports"
    blocker.write_text("not a directory")
    unlocked.add_information("a", "1")
    result = unlocked.export_snapshot()
    assert not result.ok
    assert result.backup_path is None
    assert result.backup_error
    assert result.saved.persisted
    assert DOCUMENT_KEY in store.data


def test_from_settings_wires_backend_and_costs(tmp_path):
    from lockbox.core.settings import LockBoxSettings

    settings = LockBoxSettings(home=tmp_path, export_dir=tmp_path / "out", kdf_memory_cost=8, kdf_time_cost=1)
    repo = VaultRepository.from_settings(settings)
    assert repo.backend_name == "kv"
    assert repo.export_dir == tmp_path / "out"
    assert repo.session.kdf_template.memory_cost == 8
    assert repo.notice


def test_close_flushes_and_keeps_backend_target(unlocked, store):
    unlocked.backend = MagicMock(wraps=unlocked.backend)
    unlocked.add_information("a", "1")
    unlocked.close()
    assert unlocked.state is VaultState.LOCKED
    assert unlocked.information == []
    unlocked.backend.forget.assert_not_called()
    assert list(stored_document(store).information) == ["a"]


def test_close_when_locked_is_noop(repo):
    repo.start()
    repo.close()
    assert repo.state is VaultState.LOCKED


def test_lock_and_close_keep_edits_when_save_not_persisted(unlocked):
    unlocked.add_information("a", "1")
    unlocked.backend = MagicMock()
    unlocked.backend.write.return_value = None
    with pytest.raises(UnsavedChangesError):
        unlocked.lock()
    with pytest.raises(UnsavedChangesError):
        unlocked.close()
    assert unlocked.is_unlocked
    assert unlocked.information == [InformationItem("a", "1")]
    unlocked.backend.forget.assert_not_called()


def test_memory_only_close_wipes_without_error(fast_kdf):
    repo = VaultRepository(None, session=VaultSession(fast_kdf))
    repo.unlock("pw")
    repo.add_information("a", "1")
    repo.close()
    assert repo.state is VaultState.LOCKED


def test_discard_wipes_without_saving(unlocked, store):
    unlocked.add_information("a", "1")
    unlocked.backend = MagicMock(wraps=unlocked.backend)
    unlocked.session.information.append(InformationItem("b", "2"))
    unlocked.discard()
    assert unlocked.state is VaultState.LOCKED
    unlocked.backend.write.assert_not_called()
    unlocked.backend.forget.assert_not_called()
    assert list(stored_document(store).information) == ["a"]
