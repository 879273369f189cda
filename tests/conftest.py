"""Shared fixtures and fakes that keep tests away from real tools and devices."""

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from oblysk.platform.executor import ExecutionResult
from oblysk.platform.profile import DisplayServer, OSFamily, PlatformProfile, reset_profile_cache


def pytest_addoption(parser):
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Enable live tests that drive the real clipboard and input tools (skipped by default)."
    )


class FakeExecutor:
    """Records every invocation and replays scripted results in order.

    A scripted item may be an ``ExecutionResult`` or a callable receiving the
    recorded call and returning one.  When the script is exhausted every call
    succeeds.
    """

    def __init__(self, results=None):
        self.calls: list[SimpleNamespace] = []
        self.results = list(results or [])

    async def execute(self, program, args=(), timeout_ms=5000, request_id="unknown", **kwargs):
        call = SimpleNamespace(
            program=program,
            args=tuple(args),
            timeout_ms=timeout_ms,
            request_id=request_id,
            kwargs=kwargs,
        )
        self.calls.append(call)
        method = kwargs.get("method") or program
        if self.results:
            item = self.results.pop(0)
            result = item(call) if callable(item) else item
            return result.with_method(method)
        return ExecutionResult(success=True, exit_code=0, method=method, message="Command executed successfully")


class FakeClipboard:
    """In-memory clipboard; ``reads`` scripts successive read results."""

    def __init__(self, text: str = "", reads=None):
        self.text = text
        self.reads = list(reads or [])
        self.writes: list[str] = []
        self.fail_write: Exception | None = None

    async def read_text(self, request_id: str = "clipboard") -> str:
        if self.reads:
            item = self.reads.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return self.text

    async def write_text(self, text: str, request_id: str = "clipboard") -> None:
        if self.fail_write is not None:
            raise self.fail_write
        self.writes.append(text)
        self.text = text


class FakeListener:
    """Stands in for EvdevHotkeyListener without any devices or threads."""

    def __init__(self, available=True):
        self.available = available
        self.bindings = []
        self.started = False
        self.stopped = False

    def add(self, hotkey, callback):
        self.bindings.append((hotkey, callback))

    def clear(self):
        self.bindings.clear()

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def fire(self, accelerator):
        for hotkey, callback in self.bindings:
            if hotkey.accelerator == accelerator:
                callback()


class SleepRecorder:
    """Drop-in for ``asyncio.sleep`` that records durations instead of waiting."""

    def __init__(self):
        self.durations: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.durations.append(seconds)


def make_profile(family: OSFamily = OSFamily.LINUX, display: DisplayServer | None = DisplayServer.X11, tools=()):
    if family is not OSFamily.LINUX:
        display = None
    return PlatformProfile(family, display, frozenset(tools))


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def fake_clipboard() -> FakeClipboard:
    return FakeClipboard()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def x11_profile() -> PlatformProfile:
    return make_profile(OSFamily.LINUX, DisplayServer.X11, ("xdotool", "xclip"))


@pytest.fixture
def wayland_profile() -> PlatformProfile:
    return make_profile(OSFamily.LINUX, DisplayServer.WAYLAND, ("wtype", "wl-copy", "wl-paste"))


@pytest.fixture
def windows_profile() -> PlatformProfile:
    return make_profile(OSFamily.WINDOWS, tools=("powershell",))


@pytest.fixture
def macos_profile() -> PlatformProfile:
    return make_profile(OSFamily.MACOS, tools=("osascript", "pbcopy", "pbpaste"))


@pytest.fixture(autouse=True)
def _isolate_state():
    """Reset the cached platform profile and stray handlers between tests."""
    reset_profile_cache()
    root = logging.getLogger("oblysk")
    handlers = list(root.handlers)
    yield
    reset_profile_cache()
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
