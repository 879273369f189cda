"""System clipboard access through the platform's helper tools.

Reads and writes go through :class:`CommandExecutor`, so they never block
the event loop and are bounded by a timeout.
"""

from __future__ import annotations

import logging
from typing import Sequence

from oblysk.exceptions import ClipboardError, ToolUnavailableError
from oblysk.platform.executor import CLIPBOARD_TIMEOUT_MS, CommandExecutor
from oblysk.platform.profile import DisplayServer, OSFamily, PlatformProfile

logger = logging.getLogger(__name__)

_PS_READ = (
    "powershell",
    (
        "-NoProfile",
        "-Command",
        "[Console]::OutputEncoding = [System.Text.Encoding]::UTF8; "
        "Get-Clipboard -Raw",
    ),
)
_PS_WRITE = (
    "powershell",
    (
        "-NoProfile",
        "-Command",
        "[Console]::InputEncoding = [System.Text.Encoding]::UTF8; "
        "Set-Clipboard -Value ([Console]::In.ReadToEnd())",
    ),
)

_READERS: dict = {
    DisplayServer.WAYLAND: (
        ("wl-paste", ("--no-newline",)),
    ),
    DisplayServer.X11: (
        ("xclip", ("-selection", "clipboard", "-o")),
        ("xsel", ("--clipboard", "--output")),
    ),
}
_WRITERS: dict = {
    DisplayServer.WAYLAND: (
        ("wl-copy", ()),
    ),
    DisplayServer.X11: (
        ("xclip", ("-selection", "clipboard", "-i")),
        ("xsel", ("--clipboard", "--input")),
    ),
}

CLIPBOARD_HINT = (
    "Install a clipboard helper: sudo apt install wl-clipboard (Wayland) "
    "or sudo apt install xclip (X11)"
)


def _find_command(profile: PlatformProfile, candidates: Sequence) -> tuple | None:
    for name, args in candidates:
        if profile.has(name):
            return name, tuple(args)
    return None


class SystemClipboard:
    """Adapter that reads and writes using system clipboard helpers."""

    def __init__(self, profile: PlatformProfile, executor: CommandExecutor):
        self.profile = profile
        self.executor = executor
        if profile.family is OSFamily.WINDOWS:
            self._read_cmd, self._write_cmd = _PS_READ, _PS_WRITE
        elif profile.family is OSFamily.MACOS:
            self._read_cmd, self._write_cmd = ("pbpaste", ()), ("pbcopy", ())
        else:
            self._read_cmd = _find_command(profile, _READERS[profile.display_server])
            self._write_cmd = _find_command(profile, _WRITERS[profile.display_server])

    @property
    def available(self) -> bool:
        return self._read_cmd is not None and self._write_cmd is not None

    async def read_text(self, request_id: str = "clipboard") -> str:
        """Return the current clipboard text.

        Raises:
            ClipboardError: the helper failed or timed out.
            ToolUnavailableError: no helper tool is installed.
        """
        if self._read_cmd is None:
            raise ToolUnavailableError("No clipboard reader found", CLIPBOARD_HINT)
        program, args = self._read_cmd
        result = await self.executor.execute(
            program, args, CLIPBOARD_TIMEOUT_MS, request_id, quiet=True,
        )
        if not result.success:
            # xclip/xsel exit non-zero when the clipboard holds no text
            raise ClipboardError(result.error or "clipboard read failed")
        text = result.output
        if self.profile.family is OSFamily.WINDOWS and text.endswith("\r\n"):
            text = text[:-2]
        return text

    async def write_text(self, text: str, request_id: str = "clipboard") -> None:
        """Replace the clipboard content with *text*.

        Raises:
            ClipboardError: the helper failed or timed out.
            ToolUnavailableError: no helper tool is installed.
        """
        if self._write_cmd is None:
            raise ToolUnavailableError("No clipboard writer found", CLIPBOARD_HINT)
        program, args = self._write_cmd
        # Linux helpers fork to own the selection; capturing their pipes would
        # block until the selection is taken over by someone else.
        capture = self.profile.family is not OSFamily.LINUX
        result = await self.executor.execute(
            program, args, CLIPBOARD_TIMEOUT_MS, request_id,
            input_text=text, capture=capture, quiet=True,
        )
        if not result.success:
            raise ClipboardError(result.error or "clipboard write failed")
        logger.debug(
            "[%s] Clipboard set via %s: %d chars", request_id, program, len(text),
            extra={"category": "clipboard"},
        )
