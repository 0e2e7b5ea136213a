"""
Paste collaborator: puts the finished text on the clipboard, sends the
platform paste shortcut to the focused application, then restores whatever
the clipboard held before.
"""

import subprocess
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from pynput.keyboard import Controller as KeyboardController
from pynput.keyboard import Key

from ...utils.logger import get_logger
from ...utils.platform import get_platform, get_subprocess_kwargs

logger = get_logger(__name__)

PASTE_DELAY_SECONDS = 0.08
RESTORE_DELAY_SECONDS = 0.45
CLIPBOARD_TIMEOUT_SECONDS = 1


@dataclass(frozen=True)
class ClipboardCommands:
    write: List[str]
    read: List[str]
    paste_modifier: Key


CLIPBOARD_COMMANDS: Dict[str, ClipboardCommands] = {
    "linux": ClipboardCommands(
        write=["xclip", "-selection", "clipboard"],
        read=["xclip", "-selection", "clipboard", "-o"],
        paste_modifier=Key.ctrl,
    ),
    "macos": ClipboardCommands(
        write=["pbcopy"], read=["pbpaste"], paste_modifier=Key.cmd
    ),
    "windows": ClipboardCommands(
        write=["clip"],
        read=["powershell", "-command", "Get-Clipboard"],
        paste_modifier=Key.ctrl,
    ),
}


class TextOutputController:
    """Delivers one finished string to whatever application has focus."""

    def __init__(self, on_complete: Optional[Callable[[], None]] = None):
        self._keyboard = KeyboardController()
        self._on_complete = on_complete

    def output_text(self, text: str) -> None:
        if text:
            self._deliver(text)

        if self._on_complete:
            self._on_complete()

    def _deliver(self, text: str) -> None:
        preview = text[:50] + ("..." if len(text) > 50 else "")
        commands = CLIPBOARD_COMMANDS.get(get_platform())
        if commands is None:
            logger.warning("No clipboard support on this platform, typing text instead")
            self._keyboard.type(text)
            return

        previous = self._read_clipboard(commands.read)
        if not self._write_clipboard(commands.write, text):
            self._keyboard.type(text)
            return

        time.sleep(PASTE_DELAY_SECONDS)
        with self._keyboard.pressed(commands.paste_modifier):
            self._keyboard.tap("v")
        logger.debug(f"Pasted '{preview}'")

        if previous:
            time.sleep(RESTORE_DELAY_SECONDS)
            self._write_clipboard(commands.write, previous)

    def _read_clipboard(self, command: List[str]) -> str:
        try:
            result = subprocess.run(
                command,
                **get_subprocess_kwargs(
                    capture_output=True, text=True, timeout=CLIPBOARD_TIMEOUT_SECONDS
                ),
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return ""
        return result.stdout if result.returncode == 0 else ""

    def _write_clipboard(self, command: List[str], text: str) -> bool:
        try:
            subprocess.run(
                command,
                **get_subprocess_kwargs(
                    input=text,
                    text=True,
                    timeout=CLIPBOARD_TIMEOUT_SECONDS,
                    check=True,
                ),
            )
        except (
            subprocess.TimeoutExpired,
            FileNotFoundError,
            subprocess.CalledProcessError,
        ) as e:
            logger.error(f"Failed to set clipboard: {e}")
            return False
        return True
