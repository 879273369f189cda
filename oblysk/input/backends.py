"""InputBackend — one implementation per {OS, display server} pair.

A backend knows *which* command delivers text on its platform; it never
runs anything itself.  :func:`select_backend` picks the concrete class once
from the :class:`PlatformProfile` and the app keeps that single instance.

Capability set:
    typing_command(text, delay_ms)  — keystrokes (a batch on paced backends)
    paste_trigger_command()         — the platform paste shortcut
    shell_paste_command(text)       — generic shell paste, or ``None`` when the
                                      platform uses keystroke simulation for it
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from oblysk.exceptions import ToolUnavailableError
from oblysk.input.escaping import (
    APPLESCRIPT,
    POWERSHELL_DQ,
    SENDKEYS,
    WTYPE,
    XDOTOOL,
    YDOTOOL,
    EscapingStrategy,
)
from oblysk.platform.executor import (
    BULK_TYPING_TIMEOUT_MS,
    LONG_TEXT_TIMEOUT_MS,
    PASTE_TRIGGER_TIMEOUT_MS,
    SINGLE_SHOT_TIMEOUT_MS,
)
from oblysk.platform.profile import DisplayServer, OSFamily, PlatformProfile

logger = logging.getLogger(__name__)

# evdev keycodes for ydotool's raw key syntax
_KEY_LEFTCTRL = 29
_KEY_V = 47

MACOS_KEYSTROKE_LIMIT = 200


@dataclass(frozen=True)
class Command:
    program: str
    args: tuple
    timeout_ms: int
    method: str


class InputBackend(ABC):
    """Strategy object for one platform."""

    #: Escaping used for keystroke simulation
    typing: EscapingStrategy
    #: Text this long or longer goes through the clipboard instead
    keystroke_length_limit: int | None = None

    def __init__(self, profile: PlatformProfile):
        self.profile = profile

    @property
    def platform(self) -> str:
        return self.profile.label

    @property
    def paced(self) -> bool:
        """True when text must be split into batches and paced by the caller."""
        return self.typing.paced

    @abstractmethod
    def typing_command(self, text: str, delay_ms: int) -> Command: ...

    @abstractmethod
    def paste_trigger_command(self) -> Command: ...

    @abstractmethod
    def shell_paste_command(self, text: str) -> Command | None: ...


# ------------------------------------------------------------------
# Windows
# ------------------------------------------------------------------

_SENDKEYS_PREFIX = "Add-Type -AssemblyName System.Windows.Forms; [System.Windows.Forms.SendKeys]::SendWait"


def _powershell(script: str, timeout_ms: int, method: str) -> Command:
    return Command("powershell", ("-NoProfile", "-Command", script), timeout_ms, method)


class WindowsBackend(InputBackend):
    typing = SENDKEYS

    def typing_command(self, text: str, delay_ms: int) -> Command:
        # delay_ms is applied between batches by the caller
        script = f"{_SENDKEYS_PREFIX}('{SENDKEYS.escape(text)}')"
        return _powershell(script, SINGLE_SHOT_TIMEOUT_MS, SENDKEYS.name)

    def paste_trigger_command(self) -> Command:
        return _powershell(f'{_SENDKEYS_PREFIX}("^v")', PASTE_TRIGGER_TIMEOUT_MS, SENDKEYS.name)

    def shell_paste_command(self, text: str) -> Command:
        script = f'{_SENDKEYS_PREFIX}("{POWERSHELL_DQ.escape(text)}")'
        return _powershell(script, LONG_TEXT_TIMEOUT_MS, POWERSHELL_DQ.name)


# ------------------------------------------------------------------
# macOS
# ------------------------------------------------------------------

def _osascript(lines: list[str], timeout_ms: int) -> Command:
    args: list[str] = []
    for line in lines:
        args += ["-e", line]
    return Command("osascript", tuple(args), timeout_ms, "osascript")


class MacOSBackend(InputBackend):
    typing = APPLESCRIPT
    keystroke_length_limit = MACOS_KEYSTROKE_LIMIT

    def typing_command(self, text: str, delay_ms: int) -> Command:
        literal = APPLESCRIPT.escape(text)
        if delay_ms <= 0:
            return _osascript(
                [f'tell application "System Events" to keystroke "{literal}"'],
                LONG_TEXT_TIMEOUT_MS,
            )
        return _osascript(
            [
                f'set theText to "{literal}"',
                'tell application "System Events"',
                "repeat with ch in characters of theText",
                "keystroke ch",
                f"delay {delay_ms / 1000:.3f}",
                "end repeat",
                "end tell",
            ],
            LONG_TEXT_TIMEOUT_MS,
        )

    def paste_trigger_command(self) -> Command:
        return _osascript(
            ['tell application "System Events" to keystroke "v" using command down'],
            PASTE_TRIGGER_TIMEOUT_MS,
        )

    def shell_paste_command(self, text: str) -> Command:
        return self.typing_command(text, 0)


# ------------------------------------------------------------------
# Linux
# ------------------------------------------------------------------

class LinuxBackend(InputBackend):
    """Shared Linux behaviour; subclasses fix the tool preference order."""

    #: Typing / key tools in preference order
    tool_order: tuple = ()
    install_hint: str = ""

    @property
    def typing(self) -> EscapingStrategy:  # type: ignore[override]
        return {"wtype": WTYPE, "xdotool": XDOTOOL, "ydotool": YDOTOOL}.get(
            self.key_tool or "", XDOTOOL
        )

    @property
    def key_tool(self) -> str | None:
        return self.profile.first_available(self.tool_order)

    def _require_tool(self) -> str:
        tool = self.key_tool
        if tool is None:
            raise ToolUnavailableError("No key simulation tool found", self.install_hint)
        return tool

    def typing_command(self, text: str, delay_ms: int) -> Command:
        tool = self._require_tool()
        literal = self.typing.escape(text)
        delay = str(max(0, int(delay_ms)))
        if tool == "wtype":
            args = ("-d", delay, "--", literal)
        elif tool == "xdotool":
            args = ("type", "--delay", delay, "--", literal)
        else:
            args = ("type", "--key-delay", delay, "--", literal)
        return Command(tool, args, BULK_TYPING_TIMEOUT_MS, tool)

    def paste_trigger_command(self) -> Command:
        tool = self._require_tool()
        if tool == "wtype":
            args = ("-M", "ctrl", "v", "-m", "ctrl")
        elif tool == "xdotool":
            args = ("key", "ctrl+v")
        else:
            args = ("key", f"{_KEY_LEFTCTRL}:1", f"{_KEY_V}:1", f"{_KEY_V}:0", f"{_KEY_LEFTCTRL}:0")
        return Command(tool, args, PASTE_TRIGGER_TIMEOUT_MS, tool)

    def shell_paste_command(self, text: str) -> None:
        # Linux shell paste is keystroke simulation with a fixed delay
        return None


class WaylandBackend(LinuxBackend):
    tool_order = ("wtype", "xdotool", "ydotool")
    install_hint = (
        "Install wtype (sudo apt install wtype) or ydotool "
        "(sudo apt install ydotool, then start ydotoold)"
    )


class X11Backend(LinuxBackend):
    tool_order = ("xdotool", "ydotool")
    install_hint = "Install xdotool (sudo apt install xdotool) or ydotool (sudo apt install ydotool)"


def select_backend(profile: PlatformProfile) -> InputBackend:
    """Return the backend for *profile*'s {OS, display server} pair."""
    if profile.family is OSFamily.WINDOWS:
        backend: InputBackend = WindowsBackend(profile)
    elif profile.family is OSFamily.MACOS:
        backend = MacOSBackend(profile)
    elif profile.display_server is DisplayServer.WAYLAND:
        backend = WaylandBackend(profile)
    else:
        backend = X11Backend(profile)
    logger.debug(
        "Input backend selected: %s", type(backend).__name__, extra={"category": "platform"},
    )
    return backend
