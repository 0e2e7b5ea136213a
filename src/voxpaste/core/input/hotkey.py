"""
Hotkey listener for a global 1-2 key toggle combo.

The combo is a set of key identifiers; the order keys are pressed in does not
matter. Key events arrive from pynput on its own thread.
"""

import threading
from typing import Callable, FrozenSet, Iterable, List, Optional, Set

from PySide6.QtCore import QObject, Signal

from ...utils.logger import get_logger
from ..settings.settings import Settings, get_settings

logger = get_logger(__name__)

MODIFIER_ORDER = [
    "ctrl_l",
    "ctrl_r",
    "alt_l",
    "alt_r",
    "shift_l",
    "shift_r",
    "cmd_l",
    "cmd_r",
    "caps_lock",
    "fn",
]
MODIFIER_KEYS: FrozenSet[str] = frozenset(MODIFIER_ORDER)

_DISPLAY_NAMES = {
    "ctrl_l": "Left Ctrl",
    "ctrl_r": "Right Ctrl",
    "alt_l": "Left Option",
    "alt_r": "Right Option",
    "shift_l": "Left Shift",
    "shift_r": "Right Shift",
    "cmd_l": "Left Command",
    "cmd_r": "Right Command",
    "caps_lock": "Caps Lock",
    "fn": "Fn",
    "space": "Space",
    "enter": "Return",
    "tab": "Tab",
    "esc": "Esc",
    "backspace": "Delete",
    "delete": "Forward Delete",
    "page_up": "Page Up",
    "page_down": "Page Down",
    "left": "Left Arrow",
    "right": "Right Arrow",
    "up": "Up Arrow",
    "down": "Down Arrow",
}

# pynput names the left-hand modifiers without a side suffix.
_PYNPUT_ALIASES = {
    "ctrl": "ctrl_l",
    "alt": "alt_l",
    "alt_gr": "alt_r",
    "shift": "shift_l",
    "cmd": "cmd_l",
}


def is_modifier_key(key: str) -> bool:
    return key in MODIFIER_KEYS


def _sort_priority(key: str):
    if key in MODIFIER_KEYS:
        return (0, MODIFIER_ORDER.index(key), "")
    return (1, 0, key)


def normalized_combo(keys: Iterable[str]) -> List[str]:
    """Deduplicate and order keys: modifiers first in fixed rank, then the rest."""
    return sorted(set(keys), key=_sort_priority)


def is_valid_combo(keys: Iterable[str]) -> bool:
    unique = set(keys)
    return 1 <= len(unique) <= 2 and all(isinstance(k, str) and k for k in unique)


def display_name(key: str) -> str:
    if key in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[key]
    if key.startswith("vk_"):
        return f"KeyCode {key[3:]}"
    if len(key) == 1:
        return key.upper()
    return key.replace("_", " ").title()


def format_combo_display_name(keys: Iterable[str]) -> str:
    normalized = normalized_combo(keys)
    if not normalized:
        return "Not set"
    return " + ".join(display_name(k) for k in normalized)


def key_identifier(key) -> Optional[str]:
    """Map a pynput key object to a stable identifier string."""
    from pynput import keyboard

    if isinstance(key, keyboard.Key):
        return _PYNPUT_ALIASES.get(key.name, key.name)
    if isinstance(key, keyboard.KeyCode):
        if key.char:
            return key.char.lower()
        if key.vk is not None:
            return f"vk_{key.vk}"
    return None


class KeyComboDetector:
    """
    Edge-triggered matcher for a 1-2 key combo.

    Fires ``on_toggle`` once when the pressed set becomes exactly the combo.
    Holding the combo never re-fires; any other set (including a superset)
    re-arms it.

    Key events come from the listener thread while combo and enable changes
    come from the Qt thread, so state is guarded by a lock. ``on_toggle`` runs
    outside it.
    """

    def __init__(
        self,
        keys: Iterable[str],
        on_toggle: Callable[[], None],
    ):
        keys = list(keys)
        if not is_valid_combo(keys):
            raise ValueError(f"Invalid hotkey combo: {keys!r}")
        self._combo: FrozenSet[str] = frozenset(keys)
        self._on_toggle = on_toggle
        self._pressed: Set[str] = set()
        self._fired = False
        self._enabled = True
        self._lock = threading.Lock()

    @property
    def combo(self) -> List[str]:
        with self._lock:
            return normalized_combo(self._combo)

    @property
    def pressed_keys(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._pressed)

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def update_combo(self, keys: Iterable[str]) -> bool:
        keys = list(keys)
        if not is_valid_combo(keys):
            return False
        with self._lock:
            self._combo = frozenset(keys)
            self._pressed.clear()
            self._fired = False
        return True

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            if self._enabled == enabled:
                return
            self._enabled = enabled
            self._pressed.clear()
            self._fired = False

    def handle_key_down(self, key: str) -> None:
        with self._lock:
            if not self._enabled:
                return
            if key in self._pressed:
                # auto-repeat
                return
            self._pressed.add(key)
            fire = self._evaluate()
        self._fire_if(fire)

    def handle_key_up(self, key: str) -> None:
        with self._lock:
            if not self._enabled:
                return
            self._pressed.discard(key)
            fire = self._evaluate()
        self._fire_if(fire)

    def handle_modifier_flags_changed(self, key: str) -> None:
        if not is_modifier_key(key):
            return
        with self._lock:
            if not self._enabled:
                return
            if key in self._pressed:
                self._pressed.remove(key)
            else:
                self._pressed.add(key)
            fire = self._evaluate()
        self._fire_if(fire)

    def _evaluate(self) -> bool:
        # Caller holds the lock.
        is_match = self._pressed == self._combo

        if is_match and not self._fired:
            self._fired = True
            return True

        if not is_match:
            self._fired = False
        return False

    def _fire_if(self, fire: bool) -> None:
        if fire:
            logger.debug(f"Hotkey fired: {format_combo_display_name(self._combo)}")
            self._on_toggle()


class HotkeyListener(QObject):
    """
    Listens for the configured toggle combo.

    Signals:
        toggled: Emitted once each time the combo becomes fully pressed
    """

    toggled = Signal()

    def __init__(
        self,
        settings: Optional[Settings] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)

        self._settings = settings or get_settings()
        self._detector = KeyComboDetector(
            self._settings.hotkey.keys, on_toggle=self.toggled.emit
        )
        self._impl = _PynputHotkeyListenerImpl(self._detector)

    @property
    def detector(self) -> KeyComboDetector:
        return self._detector

    def current_shortcut_display_name(self) -> str:
        return format_combo_display_name(self._detector.combo)

    def update_shortcut(self, keys: Iterable[str]) -> bool:
        keys = list(keys)
        if not self._detector.update_combo(keys):
            logger.warning(f"Rejected hotkey combo {keys!r}: need 1 or 2 keys")
            return False

        self._settings.hotkey.keys = normalized_combo(keys)
        self._settings.save()
        logger.info(f"Hotkey updated: {self.current_shortcut_display_name()}")
        return True

    def reset_to_default_shortcut(self) -> None:
        from ..settings.settings import DEFAULT_HOTKEY_KEYS

        self.update_shortcut(DEFAULT_HOTKEY_KEYS)

    def set_enabled(self, enabled: bool) -> None:
        self._detector.set_enabled(enabled)
        logger.info(f"Hotkey listening {'enabled' if enabled else 'paused'}")

    def start(self) -> None:
        self._impl.start()

    def stop(self) -> None:
        self._impl.stop()


class _PynputHotkeyListenerImpl:
    """
    Pynput-based key event source feeding a KeyComboDetector.
    """

    def __init__(self, detector: KeyComboDetector):
        self._detector = detector
        self._keyboard_listener = None

    def _on_press(self, key) -> None:
        identifier = key_identifier(key)
        if identifier is not None:
            self._detector.handle_key_down(identifier)

    def _on_release(self, key) -> None:
        identifier = key_identifier(key)
        if identifier is not None:
            self._detector.handle_key_up(identifier)

    def start(self) -> None:
        from pynput import keyboard

        self._keyboard_listener = keyboard.Listener(
            on_press=self._on_press, on_release=self._on_release
        )
        self._keyboard_listener.start()

        if hasattr(self._keyboard_listener, "IS_TRUSTED"):
            logger.info(
                f"Keyboard listener IS_TRUSTED: {self._keyboard_listener.IS_TRUSTED}"
            )
            if not self._keyboard_listener.IS_TRUSTED:
                logger.warning(
                    "Hotkey listener is NOT TRUSTED. Accessibility permissions not granted."
                )

    def stop(self) -> None:
        if self._keyboard_listener:
            self._keyboard_listener.stop()
            self._keyboard_listener = None
