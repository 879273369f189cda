"""Per-tool text escaping.

Each strategy maps raw text to a literal the target tool delivers verbatim.
A wrong rule either corrupts the typed text or breaks the command line, so
the tables here are deliberately small and explicit.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

# SendKeys grammar: these characters are commands unless wrapped
SENDKEYS_SPECIAL: dict[str, str] = {
    "{": "{{",
    "}": "}}",
    "+": "{+}",
    "^": "{^}",
    "%": "{%}",
    "~": "{~}",
    "(": "{(}",
    ")": "{)}",
    "[": "{[}",
    "]": "{]}",
}

POWERSHELL_DQ_SPECIAL = frozenset('\\"`$[]')

_NEWLINE_RE = re.compile(r"\r?\n")


def escape_sendkeys(text: str) -> str:
    """Escape *text* for ``SendWait('...')`` inside a single-quoted PS string.

    SendKeys specials are wrapped, single quotes doubled, newlines turned
    into ``{ENTER}``; carriage returns are dropped.
    """
    out = []
    for ch in text:
        if ch == "\n":
            out.append("{ENTER}")
        elif ch == "\r":
            continue
        elif ch == "'":
            out.append("''")
        else:
            out.append(SENDKEYS_SPECIAL.get(ch, ch))
    return "".join(out)


def escape_powershell_dq(text: str) -> str:
    """Escape *text* for a double-quoted PowerShell string fed to SendKeys."""
    escaped = "".join("`" + ch if ch in POWERSHELL_DQ_SPECIAL else ch for ch in text)
    return _NEWLINE_RE.sub("{ENTER}", escaped)


def escape_applescript(text: str) -> str:
    """Escape *text* for an AppleScript string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def escape_argv(text: str) -> str:
    """Linux tools get the text as one argv element: nothing to escape."""
    return text


@dataclass(frozen=True)
class EscapingStrategy:
    """Escape function plus delivery metadata for one tool.

    Attributes:
        name: Tool the strategy targets.
        escape: Pure ``raw -> literal`` function.
        max_batch: Largest slice sent per invocation; ``None`` means the tool
            accepts the whole string at once.
    """

    name: str
    escape: Callable[[str], str]
    max_batch: int | None = None

    @property
    def paced(self) -> bool:
        return self.max_batch is not None


SENDKEYS = EscapingStrategy("sendkeys", escape_sendkeys, max_batch=20)
POWERSHELL_DQ = EscapingStrategy("powershell", escape_powershell_dq)
APPLESCRIPT = EscapingStrategy("applescript", escape_applescript)
XDOTOOL = EscapingStrategy("xdotool", escape_argv)
WTYPE = EscapingStrategy("wtype", escape_argv)
YDOTOOL = EscapingStrategy("ydotool", escape_argv)

STRATEGIES: dict[str, EscapingStrategy] = {
    s.name: s for s in (SENDKEYS, POWERSHELL_DQ, APPLESCRIPT, XDOTOOL, WTYPE, YDOTOOL)
}
