from .hotkey import (
    HotkeyListener,
    KeyComboDetector,
    format_combo_display_name,
    normalized_combo,
)

__all__ = [
    "HotkeyListener",
    "KeyComboDetector",
    "format_combo_display_name",
    "normalized_combo",
]
