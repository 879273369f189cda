"""Accelerator string ↔ evdev keycode mapping helpers."""

from __future__ import annotations

from dataclasses import dataclass

# evdev keycodes (avoid hard dependency on evdev at import time)
KEYCODES: dict[str, int] = {
    "1": 2, "2": 3, "3": 4, "4": 5, "5": 6, "6": 7, "7": 8, "8": 9, "9": 10, "0": 11,
    "q": 16, "w": 17, "e": 18, "r": 19, "t": 20, "y": 21, "u": 22, "i": 23, "o": 24, "p": 25,
    "a": 30, "s": 31, "d": 32, "f": 33, "g": 34, "h": 35, "j": 36, "k": 37, "l": 38,
    "z": 44, "x": 45, "c": 46, "v": 47, "b": 48, "n": 49, "m": 50,
    "space": 57, "enter": 28, "tab": 15,
    # Numpad
    "num7": 71, "num8": 72, "num9": 73,
    "num4": 75, "num5": 76, "num6": 77,
    "num1": 79, "num2": 80, "num3": 81, "num0": 82,
}

MODIFIER_KEYCODES: dict[str, frozenset] = {
    "ctrl": frozenset({29, 97}),     # KEY_LEFTCTRL, KEY_RIGHTCTRL
    "alt": frozenset({56, 100}),     # KEY_LEFTALT, KEY_RIGHTALT
    "shift": frozenset({42, 54}),    # KEY_LEFTSHIFT, KEY_RIGHTSHIFT
    "meta": frozenset({125, 126}),   # KEY_LEFTMETA, KEY_RIGHTMETA
}

_MODIFIER_ALIASES: dict[str, str] = {
    "ctrl": "ctrl",
    "control": "ctrl",
    "commandorcontrol": "ctrl",
    "cmdorctrl": "ctrl",
    "alt": "alt",
    "option": "alt",
    "shift": "shift",
    "meta": "meta",
    "super": "meta",
    "command": "meta",
    "cmd": "meta",
}


@dataclass(frozen=True)
class Hotkey:
    accelerator: str
    modifiers: frozenset
    keycode: int

    def matches(self, keycode: int, held_modifiers: set[str]) -> bool:
        return keycode == self.keycode and self.modifiers == frozenset(held_modifiers)


def parse_accelerator(accelerator: str) -> Hotkey:
    """Parse ``"CommandOrControl+Alt+num1"`` style strings.

    Raises:
        ValueError: unknown modifier or key, or no key given.
    """
    parts = [p.strip().lower() for p in accelerator.split("+") if p.strip()]
    if not parts:
        raise ValueError(f"Empty accelerator: {accelerator!r}")

    *mods, key = parts
    modifiers = set()
    for mod in mods:
        if mod not in _MODIFIER_ALIASES:
            raise ValueError(f"Unknown modifier {mod!r} in {accelerator!r}")
        modifiers.add(_MODIFIER_ALIASES[mod])

    if key not in KEYCODES:
        raise ValueError(f"Unknown key {key!r} in {accelerator!r}")
    return Hotkey(accelerator, frozenset(modifiers), KEYCODES[key])


def modifier_for_keycode(keycode: int) -> str | None:
    for name, codes in MODIFIER_KEYCODES.items():
        if keycode in codes:
            return name
    return None
