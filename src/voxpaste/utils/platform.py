"""Platform-specific utilities for cross-platform compatibility."""

import platform
import subprocess
import sys

from .logger import get_logger

logger = get_logger(__name__)


def get_platform() -> str:
    system = platform.system()
    if system == "Darwin":
        return "macos"
    return system.lower()


def get_subprocess_kwargs(**kwargs) -> dict:
    # Keep clipboard helpers from flashing a console window on Windows.
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NO_WINDOW
    return kwargs


def check_accessibility_permissions() -> bool:
    """Whether synthetic key events (the paste shortcut) will be delivered."""
    if get_platform() != "macos":
        return True

    try:
        # Attempt a minimal System Events interaction to test accessibility
        result = subprocess.run(
            ["osascript", "-e", 'tell application "System Events" to keystroke ""'],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except subprocess.TimeoutExpired:
        logger.warning("Accessibility permission check timed out")
        return False
    except OSError as e:
        logger.warning(f"Failed to check accessibility permissions: {e}")
        return False
