"""Unit tests for clipboard helpers."""

import pyperclip
import pytest
from unittest.mock import patch

from lockbox.frontend.cli import clipboard


@pytest.fixture
def mock_pyperclip():
    with patch("lockbox.frontend.cli.clipboard.pyperclip") as mock_lib:
        mock_lib.PyperclipException = pyperclip.PyperclipException
        yield mock_lib


def test_copy_without_clear(mock_pyperclip):
    with patch.object(clipboard, "schedule_clear") as schedule:
        clipboard.copy_to_clipboard("secret")
    mock_pyperclip.copy.assert_called_once_with("secret")
    schedule.assert_not_called()


def test_copy_with_clear_schedules_timer(mock_pyperclip):
    with patch.object(clipboard, "schedule_clear") as schedule:
        clipboard.copy_to_clipboard("secret", clear_after=30)
    schedule.assert_called_once_with("secret", 30)


def test_clear_only_if_unchanged(mock_pyperclip):
    mock_pyperclip.paste.return_value = "secret"
    clipboard._clear_if_unchanged("secret")
    mock_pyperclip.copy.assert_called_once_with("")

    mock_pyperclip.copy.reset_mock()
    mock_pyperclip.paste.return_value = "something the user copied later"
    clipboard._clear_if_unchanged("secret")
    mock_pyperclip.copy.assert_not_called()


def test_clear_failure_is_logged(mock_pyperclip, caplog):
    mock_pyperclip.paste.side_effect = pyperclip.PyperclipException("no clipboard")
    with caplog.at_level("WARNING"):
        clipboard._clear_if_unchanged("secret")
    assert "Could not clear clipboard" in caplog.text


def test_schedule_clear_replaces_pending_timer(mock_pyperclip):
    mock_pyperclip.paste.return_value = "second"
    first = clipboard.schedule_clear("first", 60)
    second = clipboard.schedule_clear("second", 0.01)
    second.join(timeout=2)
    first.join(timeout=2)
    assert not first.is_alive()
    mock_pyperclip.copy.assert_called_once_with("")
