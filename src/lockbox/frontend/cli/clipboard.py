"""Clipboard utilities for the CLI frontend.

Uses pyperclip for cross-platform clipboard access. Copied secrets can be
cleared after a delay; the clipboard is only wiped if it still holds the
value we put there.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import pyperclip

logger = logging.getLogger(__name__)

_pending: Optional[threading.Timer] = None
_pending_lock = threading.Lock()


def copy_to_clipboard(text: str, clear_after: float = 0) -> None:
    """Copy text to the system clipboard.

    Args:
        text: The text to copy.
        clear_after: Seconds until the clipboard is cleared again; 0 keeps it.

    Raises:
        pyperclip.PyperclipException: If clipboard access fails.
    """
    pyperclip.copy(text)
    if clear_after > 0:
        schedule_clear(text, clear_after)


def schedule_clear(text: str, delay: float) -> threading.Timer:
    global _pending
    timer = threading.Timer(delay, _clear_if_unchanged, args=(text,))
    timer.daemon = True
    with _pending_lock:
        if _pending is not None:
            _pending.cancel()
        _pending = timer
    timer.start()
    return timer


def _clear_if_unchanged(text: str) -> None:
    try:
        if pyperclip.paste() == text:
            pyperclip.copy("")
    except pyperclip.PyperclipException as e:
        logger.warning("Could not clear clipboard: %s", e)
