"""Clipboard helpers with timed auto-clear."""

import logging
import threading
from typing import Callable, Optional

import pyperclip

from .config import Config

logger = logging.getLogger(__name__)


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the clipboard. Returns False when no clipboard is available."""
    try:
        pyperclip.copy(text)
        return True
    except pyperclip.PyperclipException as e:
        logger.debug("Clipboard unavailable: %s", e)
        return False


def _clear_if_unchanged(
    original: str, notify_callback: Optional[Callable[[], None]] = None
) -> None:
    # Leave the clipboard alone if the user copied something else meanwhile.
    try:
        if pyperclip.paste() != original:
            return
    except pyperclip.PyperclipException:
        return
    if copy_to_clipboard("") and notify_callback:
        notify_callback()


def copy_to_clipboard_with_autoclear(
    text: str,
    timeout: int = Config.CLIPBOARD_TIMEOUT_SECONDS,
    notify_callback: Optional[Callable[[], None]] = None,
) -> bool:
    """Copy text and clear it after ``timeout`` seconds (0 disables clearing)."""
    success = copy_to_clipboard(text)

    if success and timeout > 0:
        timer = threading.Timer(timeout, _clear_if_unchanged, args=(text, notify_callback))
        timer.daemon = True
        timer.start()

    return success
