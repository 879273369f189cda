"""Typed event definitions (dataclasses)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EventType(Enum):
    """Events delivered toward the UI collaborator.

    The value is the channel name the collaborator listens on.
    """

    # Hotkey / tray triggers
    PASTE_CELL = "paste-cell"
    PASTE_ON_DECK = "paste-on-deck"
    COPY_TO_NOTEPAD = "copy-to-notepad"
    REVERSE_COPY = "reverse-copy"
    TOGGLE_WINDOW = "toggle-window"
    HOTKEY_REGISTRATION_COMPLETE = "hotkey-registration-complete"
    # Clipboard
    CLIPBOARD_CHANGED = "clipboard-changed"
    # Diagnostics
    MAIN_PROCESS_LOG = "main-process-log"
    SHOW_DEBUG_LOGS = "show-debug-logs"
    # Window lifecycle
    MINIMIZE_WINDOW = "minimize-window"
    # App lifecycle
    APP_QUIT = "app-quit"

    @property
    def channel(self) -> str:
        return self.value


@dataclass(frozen=True)
class Event:
    type: EventType
    data: Any
    timestamp: float
