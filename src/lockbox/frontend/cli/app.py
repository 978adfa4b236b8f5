"""Textual front end for LockBox.

Start here with `python -m lockbox.frontend.cli.app`
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import pyperclip
from textual import on
from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Footer, Header, Input, Label, Static

from lockbox.core.exceptions import LockBoxError, VaultExistsError, WrongPasswordError
from lockbox.core.models import Credential, InformationItem
from lockbox.core.settings import LockBoxSettings
from lockbox.core.search import filter_credentials, filter_information
from lockbox.frontend.cli.clipboard import copy_to_clipboard
from lockbox.frontend.cli.context import AppContext, build_context
from lockbox.frontend.cli.logging_config import configure_logging
from lockbox.storage.file_backend import DEFAULT_FILE_NAME

logger = logging.getLogger(__name__)

MASK = "••••••••"


def _mask(secret: str, revealed: bool) -> str:
    return secret if revealed else MASK


# === Modal definitions ===


class UnlockResult:
    def __init__(self, action: str, password: str = ""):
        self.action = action
        self.password = password


class UnlockModal(ModalScreen[Optional[UnlockResult]]):
    """Master password prompt plus the storage gestures available while locked."""

    def __init__(self, has_vault: bool, notice: str = "", can_pick_file: bool = False,
                 can_grant: bool = False):
        super().__init__()
        self.has_vault = has_vault
        self.notice = notice
        self.can_pick_file = can_pick_file
        self.can_grant = can_grant

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static("Unlock Vault", classes="title")
            if self.has_vault:
                yield Label("Enter your master password")
            else:
                yield Label("No vault found. Choose a master password to create one.")
            if self.notice:
                yield Static(self.notice, classes="section-label")
            self.password_input = Input(placeholder="••••••", password=True, id="password")
            yield self.password_input
            with Horizontal():
                if self.can_pick_file:
                    yield Button("Open Vault File", id="open")
                if self.can_grant:
                    yield Button("Grant Access", id="grant")
                yield Button("Unlock (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.password_input)

    def _submit(self) -> None:
        self.dismiss(UnlockResult("unlock", self.password_input.value or ""))

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "ok":
            self._submit()
        else:
            self.dismiss(UnlockResult(event.button.id))

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class PathModal(ModalScreen[Optional[str]]):
    """Ask for a file system path; stands in for a native file dialog."""

    def __init__(self, title: str, value: str = ""):
        super().__init__()
        self.dialog_title = title
        self.value = value

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(self.dialog_title, classes="title")
            yield Label("Path (Enter to confirm, Esc to cancel)")
            self.path_input = Input(placeholder="/path/to/vault.dat", value=self.value)
            yield self.path_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("OK (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.path_input)

    def _submit(self) -> None:
        path = self.path_input.value.strip()
        self.dismiss(path or None)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
        else:
            self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class InformationModal(ModalScreen[Optional[InformationItem]]):
    def __init__(self, item: Optional[InformationItem] = None):
        super().__init__()
        self.item = item

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static("Edit Information" if self.item else "Add Information", classes="title")
            yield Label("Name")
            self.name_input = Input(placeholder="e.g. Passport number",
                                    value=self.item.name if self.item else "")
            yield self.name_input
            yield Label("Value")
            self.value_input = Input(value=self.item.value if self.item else "")
            yield self.value_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Save (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.name_input)

    def _submit(self) -> None:
        self.dismiss(InformationItem(self.name_input.value, self.value_input.value))

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
        else:
            self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class CredentialModal(ModalScreen[Optional[Credential]]):
    def __init__(self, credential: Optional[Credential] = None):
        super().__init__()
        self.credential = credential

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        cred = self.credential
        with Vertical(classes="dialog"):
            yield Static("Edit Credential" if cred else "Add Credential", classes="title")
            yield Label("Site")
            self.site_input = Input(placeholder="example.com", value=cred.site if cred else "")
            yield self.site_input
            yield Label("Username")
            self.user_input = Input(value=cred.user if cred else "")
            yield self.user_input
            yield Label("Password")
            self.password_input = Input(password=True, value=cred.password if cred else "")
            yield self.password_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Save (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.site_input)

    def _submit(self) -> None:
        self.dismiss(
            Credential(self.site_input.value, self.user_input.value, self.password_input.value)
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
        else:
            self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class DeleteConfirmModal(ModalScreen[Optional[bool]]):
    def __init__(self, prompt: str, confirm_label: str = "Delete"):
        super().__init__()
        self.prompt = prompt
        self.confirm_label = confirm_label

    def compose(self) -> ComposeResult:  # pragma: no cover
        with Vertical(classes="dialog"):
            yield Static(self.prompt)
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button(f"{self.confirm_label} (Enter)", id="ok", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        self.dismiss(event.button.id == "ok")

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(False)
        elif event.key == "enter":
            self.dismiss(True)


class ErrorModal(ModalScreen[None]):
    """Modal for displaying error messages prominently."""

    def __init__(self, title: str, message: str):
        super().__init__()
        self.error_title = title
        self.error_message = message

    def compose(self) -> ComposeResult:  # pragma: no cover
        with Vertical(classes="dialog"):
            yield Static(self.error_title, classes="title")
            yield Static(self.error_message)
            yield Static("")
            yield Button("OK", id="ok", variant="primary")

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        self.dismiss(None)

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key in ("escape", "enter"):
            self.dismiss(None)


class LockBoxApp(App):
    """Two tables (information, credentials) over one encrypted vault."""

    TITLE = "LockBox"

    CSS = """
    #search { margin: 0 1; }
    .pane { border: heavy $surface; }
    .title { padding: 1 1; text-style: bold; }
    #status { padding: 0 1 1 1; height: 3; color: $text-muted; }
    .section-label { padding: 0 1; color: $text-muted; }
    ModalScreen { align: center middle; background: rgba(0,0,0,0.45); }
    .dialog { width: 75%; height: auto; padding: 1; border: heavy $surface; background: $boost; }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("i", "add_information", "Add Info"),
        ("n", "add_credential", "Add Credential"),
        ("e", "edit", "Edit"),
        ("d", "delete", "Delete"),
        ("y", "copy", "Copy"),
        ("v", "toggle_reveal", "Reveal"),
        ("/", "search", "Search"),
        ("s", "save", "Save"),
        ("x", "export", "Export"),
        ("l", "lock", "Lock"),
    ]

    def __init__(self, ctx: AppContext | None = None):
        self.ctx = ctx or build_context()
        super().__init__()
        self.info_table: DataTable | None = None
        self.cred_table: DataTable | None = None
        self.status: Static | None = None
        # Row position -> index in the full collection, after filtering.
        self.info_rows: List[int] = []
        self.cred_rows: List[int] = []
        self.revealed = False
        self.search_term = ""

    @property
    def repo(self):
        return self.ctx.repository

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Input(placeholder="Search (/)", id="search")
        with Horizontal():
            with Vertical(classes="pane"):
                yield Static("Information", classes="title")
                self.info_table = DataTable(id="information", cursor_type="row")
                yield self.info_table
            with Vertical(classes="pane"):
                yield Static("Credentials", classes="title")
                self.cred_table = DataTable(id="credentials", cursor_type="row")
                yield self.cred_table
        self.status = Static("", id="status")
        yield self.status
        yield Footer()

    def on_mount(self) -> None:
        assert self.info_table is not None and self.cred_table is not None
        self.info_table.add_columns("Name", "Value")
        self.cred_table.add_columns("Site", "Username", "Password")
        startup = self.ctx.startup
        if startup is not None and startup.error:
            self.push_screen(ErrorModal("Could not load vault", startup.error))
        self.show_unlock()

    # === Locked state ===

    def show_unlock(self) -> None:
        self.refresh_tables()
        backend = self.repo.backend
        can_grant = bool(
            backend is not None
            and hasattr(backend, "remembered_handle")
            and not self.repo.has_vault
            and backend.remembered_handle() is not None
        )
        self.push_screen(
            UnlockModal(
                has_vault=self.repo.has_vault,
                notice=self.repo.notice,
                can_pick_file=self.repo.backend_name == "file",
                can_grant=can_grant,
            ),
            self._handle_unlock,
        )

    def _handle_unlock(self, result: Optional[UnlockResult]) -> None:
        if result is None:
            self.exit()
            return
        if result.action == "open":
            self.push_screen(PathModal("Open Vault File"), self._handle_open_path)
        elif result.action == "grant":
            self._grant_access()
        elif self._needs_new_location():
            default = str(self.ctx.settings.home / DEFAULT_FILE_NAME)
            self.push_screen(
                PathModal("Create Vault File", value=default),
                lambda path: self._handle_new_path(path, result.password),
            )
        else:
            self._unlock(result.password)

    def _needs_new_location(self) -> bool:
        backend = self.repo.backend
        return (
            backend is not None
            and self.repo.backend_name == "file"
            and not self.repo.has_vault
            and not backend.has_target
        )

    def _handle_open_path(self, path: Optional[str]) -> None:
        if path:
            self.ctx.picker.preset_existing(path)
            try:
                if self.repo.select_existing_vault():
                    self._set_status(f"Vault file selected: {self.repo.backend.location}")
                else:
                    self._set_status("No vault found in that file")
            except LockBoxError as exc:
                self.notify(str(exc), severity="error")
        self.show_unlock()

    def _handle_new_path(self, path: Optional[str], password: str) -> None:
        if not path:
            self.show_unlock()
            return
        self.ctx.picker.preset_new(path)
        self._unlock(password, new_path=path)

    def _grant_access(self) -> None:
        self.ctx.picker.preset_confirm(True)
        try:
            if self.repo.grant_access():
                self._set_status("Access granted")
            else:
                self.notify("Access to the vault file was not granted", severity="warning")
        except LockBoxError as exc:
            self.notify(str(exc), severity="error")
        self.show_unlock()

    def _unlock(self, password: str, new_path: Optional[str] = None) -> None:
        try:
            created = self.repo.unlock(password)
        except VaultExistsError:
            self.notify("A vault already exists there. Enter its master password to unlock it.", severity="warning")
            if new_path:
                target = Path(new_path).expanduser()
                if target.is_dir():
                    target = target / DEFAULT_FILE_NAME
                self._handle_open_path(str(target))
            else:
                self.show_unlock()
            return
        except WrongPasswordError:
            self.notify("Incorrect master password", severity="error")
            self.show_unlock()
            return
        except LockBoxError as exc:
            self.notify(str(exc), severity="error")
            self.show_unlock()
            return
        self.refresh_tables()
        self._set_status("New vault created" if created else "Vault unlocked")

    # === Tables ===

    def refresh_tables(self) -> None:
        assert self.info_table is not None and self.cred_table is not None
        self.info_table.clear(columns=False)
        self.cred_table.clear(columns=False)
        self.info_rows = []
        self.cred_rows = []
        if not self.repo.is_unlocked:
            self._set_status("Locked")
            return

        for idx, item in filter_information(self.repo.information, self.search_term):
            self.info_table.add_row(item.name, item.value)
            self.info_rows.append(idx)
        for idx, cred in filter_credentials(self.repo.credentials, self.search_term):
            self.cred_table.add_row(cred.site, cred.user, _mask(cred.password, self.revealed))
            self.cred_rows.append(idx)
        self._update_status()

    def _set_status(self, message: str) -> None:
        if self.status:
            self.status.update(message)

    def _update_status(self) -> None:
        where = self.repo.backend.location if self.repo.backend else None
        self._set_status(
            f"Vault: {where or 'memory only'} • Information: {len(self.info_rows)}"
            f" • Credentials: {len(self.cred_rows)}"
        )

    def _selected(self, table: DataTable | None, rows: List[int]) -> Optional[int]:
        if table is None or table.cursor_row is None:
            return None
        pos = table.cursor_row
        if 0 <= pos < len(rows):
            return rows[pos]
        return None

    def _credentials_focused(self) -> bool:
        return self.focused is not self.info_table

    def _require_unlocked(self) -> bool:
        if not self.repo.is_unlocked:
            self._set_status("Vault is locked")
            return False
        return True

    def _run(self, command, *args, success: str = "") -> None:
        try:
            result = command(*args)
        except LockBoxError as exc:
            self.notify(str(exc), severity="error")
            self.refresh_tables()
            return
        self.refresh_tables()
        if getattr(result, "persisted", True) is False and not self.repo.memory_only:
            self.notify("Changes were not saved: no vault location chosen", severity="warning")
        elif success:
            self._set_status(success)

    @on(Input.Changed, "#search")
    def on_search_changed(self, event: Input.Changed) -> None:
        self.search_term = event.value
        self.refresh_tables()

    # === Actions ===

    def action_search(self) -> None:
        self.query_one("#search", Input).focus()

    def action_toggle_reveal(self) -> None:
        self.revealed = not self.revealed
        self.refresh_tables()

    def action_add_information(self) -> None:
        if self._require_unlocked():
            self.push_screen(InformationModal(), self._handle_add_information)

    def _handle_add_information(self, item: Optional[InformationItem]) -> None:
        if item is not None:
            self._run(self.repo.add_information, item.name, item.value, success="Information saved")

    def action_add_credential(self) -> None:
        if self._require_unlocked():
            self.push_screen(CredentialModal(), self._handle_add_credential)

    def _handle_add_credential(self, cred: Optional[Credential]) -> None:
        if cred is not None:
            self._run(self.repo.add_credential, cred.site, cred.user, cred.password,
                      success="Credential saved")

    def action_edit(self) -> None:
        if not self._require_unlocked():
            return
        if self._credentials_focused():
            idx = self._selected(self.cred_table, self.cred_rows)
            if idx is None:
                return
            self.push_screen(
                CredentialModal(self.repo.credentials[idx]),
                lambda cred: cred and self._run(
                    self.repo.update_credential, idx, cred, success="Credential updated"
                ),
            )
        else:
            idx = self._selected(self.info_table, self.info_rows)
            if idx is None:
                return
            self.push_screen(
                InformationModal(self.repo.information[idx]),
                lambda item: item and self._run(
                    self.repo.update_information, idx, item, success="Information updated"
                ),
            )

    def action_delete(self) -> None:
        if not self._require_unlocked():
            return
        if self._credentials_focused():
            idx = self._selected(self.cred_table, self.cred_rows)
            if idx is None:
                return
            prompt = f"Delete credential for '{self.repo.credentials[idx].site}'?"
            command = self.repo.delete_credential
        else:
            idx = self._selected(self.info_table, self.info_rows)
            if idx is None:
                return
            prompt = f"Delete '{self.repo.information[idx].name}'?"
            command = self.repo.delete_information
        self.push_screen(
            DeleteConfirmModal(prompt),
            lambda confirmed: confirmed and self._run(command, idx, success="Deleted"),
        )

    def action_copy(self) -> None:
        if not self._require_unlocked():
            return
        if self._credentials_focused():
            idx = self._selected(self.cred_table, self.cred_rows)
            secret = self.repo.credentials[idx].password if idx is not None else None
        else:
            idx = self._selected(self.info_table, self.info_rows)
            secret = self.repo.information[idx].value if idx is not None else None
        if secret is None:
            return
        seconds = self.ctx.settings.clipboard_clear_seconds
        try:
            copy_to_clipboard(secret, clear_after=seconds)
        except pyperclip.PyperclipException:
            self.notify("Could not copy to clipboard", severity="error")
            return
        if seconds:
            self.notify(f"Copied; clipboard clears in {seconds}s")
        else:
            self.notify("Copied to clipboard")

    def action_save(self) -> None:
        if self._require_unlocked():
            self._run(self.repo.save, success="Vault saved")

    def action_export(self) -> None:
        if not self._require_unlocked():
            return
        try:
            result = self.repo.export_snapshot()
        except LockBoxError as exc:
            self.notify(str(exc), severity="error")
            return
        if result.ok:
            self.notify(f"Backup written to {result.backup_path}", title="Exported")
        else:
            self.push_screen(
                ErrorModal(
                    "Backup failed",
                    f"The vault was saved, but the backup copy failed: {result.backup_error}",
                )
            )

    def action_lock(self) -> None:
        if not self.repo.is_unlocked:
            return
        try:
            self.repo.lock()
        except LockBoxError as exc:
            self.notify(f"Could not save before locking: {exc}", severity="error")
            return
        self.revealed = False
        self.show_unlock()

    def action_quit(self) -> None:
        """Flush and wipe before leaving; the vault file stays remembered."""
        try:
            self.repo.close()
        except LockBoxError as exc:
            logger.error("Save on exit failed: %s", exc)
            self.push_screen(
                DeleteConfirmModal(
                    f"Your changes could not be saved: {exc}\n\nQuit and discard them?",
                    confirm_label="Discard and quit",
                ),
                self._handle_quit_confirm,
            )
            return
        self.exit()

    def _handle_quit_confirm(self, discard: Optional[bool]) -> None:
        if discard:
            self.repo.discard()
            self.exit()
        else:
            self.refresh_tables()


def main() -> None:  # pragma: no cover
    """Run the LockBox Textual CLI application."""
    settings = LockBoxSettings.from_env()
    configure_logging(settings.log_level, log_file=settings.home / "lockbox.log")
    LockBoxApp(build_context(settings)).run()


if __name__ == "__main__":  # pragma: no cover
    main()
