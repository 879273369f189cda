"""PlatformProfile — OS family, display server and available automation tools.

The profile is resolved once per process (see :func:`resolve_profile`) and
never re-probed.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping

logger = logging.getLogger(__name__)


class OSFamily(Enum):
    WINDOWS = "Windows"
    LINUX = "Linux"
    MACOS = "macOS"


class DisplayServer(Enum):
    X11 = "X11"
    WAYLAND = "Wayland"


# Tools assumed present on their platform (shipped with the OS)
WINDOWS_TOOLS = ("powershell",)
MACOS_TOOLS = ("osascript", "pbcopy", "pbpaste")

# Probed on Linux, per display server
X11_TOOLS = ("xdotool", "xclip", "xsel")
WAYLAND_TOOLS = ("wtype", "wl-copy", "wl-paste", "xdotool")
LINUX_FALLBACK_TOOLS = ("ydotool",)

PROBE_TIMEOUT = 2.0


@dataclass(frozen=True)
class PlatformProfile:
    family: OSFamily
    display_server: DisplayServer | None = None
    available_tools: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        if self.family is not OSFamily.LINUX and self.display_server is not None:
            raise ValueError("display_server is only meaningful on Linux")

    def has(self, tool: str) -> bool:
        return tool in self.available_tools

    def first_available(self, candidates: Iterable[str]) -> str | None:
        """Return the first tool of *candidates* that is available."""
        for tool in candidates:
            if tool in self.available_tools:
                return tool
        return None

    @property
    def label(self) -> str:
        """Human-readable platform label, e.g. ``Linux (Wayland)``."""
        if self.display_server is None:
            return self.family.value
        return f"{self.family.value} ({self.display_server.value})"

    def to_dict(self) -> dict:
        return {
            "family": self.family.value,
            "displayServer": self.display_server.value if self.display_server else None,
            "availableTools": sorted(self.available_tools),
        }


# ------------------------------------------------------------------
# Detection helpers
# ------------------------------------------------------------------

def detect_family(platform: str | None = None) -> OSFamily:
    platform = sys.platform if platform is None else platform
    if platform.startswith("win"):
        return OSFamily.WINDOWS
    if platform == "darwin":
        return OSFamily.MACOS
    return OSFamily.LINUX


def detect_display_server(environ: Mapping[str, str] | None = None) -> DisplayServer:
    """Wayland if ``XDG_SESSION_TYPE`` says so or ``WAYLAND_DISPLAY`` is set."""
    environ = os.environ if environ is None else environ
    session_type = environ.get("XDG_SESSION_TYPE", "").lower()
    if "wayland" in session_type or environ.get("WAYLAND_DISPLAY"):
        return DisplayServer.WAYLAND
    return DisplayServer.X11


class ToolAvailabilityProbe:
    """Checks whether an executable is on PATH using ``which`` / ``where``.

    ``is_available`` never raises: a non-zero exit, a timeout or any OS
    error all mean "not available".
    """

    def __init__(self, family: OSFamily, runner: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.locator = "where" if family is OSFamily.WINDOWS else "which"
        self._run = runner

    def is_available(self, tool: str) -> bool:
        try:
            result = self._run(
                [self.locator, tool],
                capture_output=True,
                text=True,
                timeout=PROBE_TIMEOUT,
            )
        except (OSError, subprocess.SubprocessError, ValueError) as exc:
            logger.debug("Probe for %s failed: %s", tool, exc, extra={"category": "platform"})
            return False
        return result.returncode == 0

    def probe(self, tools: Iterable[str]) -> frozenset:
        return frozenset(tool for tool in tools if self.is_available(tool))


def build_profile(
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    probe: ToolAvailabilityProbe | None = None,
) -> PlatformProfile:
    """Compute a profile without touching the process-wide cache."""
    family = detect_family(platform)

    if family is OSFamily.WINDOWS:
        return PlatformProfile(family, None, frozenset(WINDOWS_TOOLS))
    if family is OSFamily.MACOS:
        return PlatformProfile(family, None, frozenset(MACOS_TOOLS))

    display_server = detect_display_server(environ)
    candidates = WAYLAND_TOOLS if display_server is DisplayServer.WAYLAND else X11_TOOLS
    probe = probe or ToolAvailabilityProbe(family)
    tools = probe.probe(candidates + LINUX_FALLBACK_TOOLS)
    return PlatformProfile(family, display_server, tools)


_cached_profile: PlatformProfile | None = None


def resolve_profile() -> PlatformProfile:
    """Return the process-wide profile, computing it on first use."""
    global _cached_profile

    if _cached_profile is None:
        _cached_profile = build_profile()
        logger.info(
            "Platform resolved: %s, tools=%s",
            _cached_profile.label,
            ", ".join(sorted(_cached_profile.available_tools)) or "none",
            extra={"category": "platform", "data": _cached_profile.to_dict()},
        )
    return _cached_profile


def reset_profile_cache() -> None:
    """Forget the cached profile (tests only)."""
    global _cached_profile
    _cached_profile = None
