"""Tests for OblyskApp wiring — fake executor, clipboard and hotkey listener."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import pytest

from oblysk.app import OblyskApp, default_hotkeys
from oblysk.core.events import EventType
from oblysk.input.hotkeys import HotkeyManager
from oblysk.platform.executor import CommandExecutor, ExecutionResult
from oblysk.platform.profile import DisplayServer, OSFamily
from tests.conftest import FakeClipboard, FakeExecutor, FakeListener, SleepRecorder, make_profile


class Window:
    """Records every event sent toward the UI collaborator."""

    def __init__(self, app):
        self.events = []
        app.event_bus.subscribe_all(self.events.append)

    def of(self, event_type):
        return [e.data for e in self.events if e.type is event_type]


class InterpreterExecutor(CommandExecutor):
    """Real executor that runs a no-op interpreter with the backend's argv."""

    async def execute(self, program, args=(), *rest, **kwargs):
        return await super().execute(sys.executable, ["-c", "pass", *args], *rest, **kwargs)


def make_app(tmp_path, profile, executor=None, clipboard=None):
    app = OblyskApp(config_path=str(tmp_path / "cfg.json"))
    app._init_platform(profile, executor or FakeExecutor(), clipboard or FakeClipboard())
    app.keystrokes._sleep = SleepRecorder()
    app.paste_dispatcher._sleep = SleepRecorder()
    return app


# ---------------------------------------------------------------------------
# Dispatch requests
# ---------------------------------------------------------------------------

class TestDispatch:

    def test_simulate_keystrokes_response(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        response = asyncio.run(app.simulate_keystrokes("hello"))

        assert response["success"] is True
        assert response["method"] == "xdotool"
        assert response["platform"] == "Linux (X11)"
        assert response["operation"] == "keystrokes"
        assert len(response["requestId"]) == 9
        assert isinstance(response["duration"], int)
        # default delay from config
        assert app.executor.calls[0].args == ("type", "--delay", "10", "--", "hello")

    def test_request_ids_are_unique(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)

        async def scenario():
            return [await app.simulate_keystrokes("x", 0) for _ in range(5)]

        ids = {r["requestId"] for r in asyncio.run(scenario())}
        assert len(ids) == 5

    def test_missing_tool_is_reported(self, tmp_path):
        app = make_app(tmp_path, make_profile(OSFamily.LINUX, DisplayServer.WAYLAND, ()))
        response = asyncio.run(app.simulate_keystrokes("hello", 10))
        assert response["success"] is False
        assert response["method"] == "none"
        assert "No key simulation tool found" in response["error"]

    def test_windows_batches(self, tmp_path, windows_profile):
        app = make_app(tmp_path, windows_profile)
        response = asyncio.run(app.simulate_keystrokes("a{b}c", 50))
        assert response["success"] is True
        assert response["message"] == "Keystrokes completed"
        assert len(app.executor.calls) == 2

    def test_paste_via_clipboard(self, tmp_path, wayland_profile):
        app = make_app(tmp_path, wayland_profile)
        response = asyncio.run(app.paste_via_clipboard("big text"))
        assert response["success"] is True
        assert response["operation"] == "clipboard"
        assert response["method"] == "clipboard"
        assert app.clipboard.writes == ["big text"]
        assert app.executor.calls[0].program == "wtype"

    def test_shell_paste_on_linux_types_with_shell_delay(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.config.set('shell_paste_delay_ms', 25)
        response = asyncio.run(app.paste_via_shell("echo hi"))
        assert response["operation"] == "shell"
        assert app.executor.calls[0].args == ("type", "--delay", "25", "--", "echo hi")

    def test_shell_paste_on_windows(self, tmp_path, windows_profile):
        app = make_app(tmp_path, windows_profile)
        response = asyncio.run(app.paste_via_shell("$x"))
        assert response["method"] == "powershell"
        (call,) = app.executor.calls
        assert call.timeout_ms == 10000
        assert call.args[-1].endswith('SendWait("`$x")')

    @pytest.mark.parametrize("text", [
        "a\x00b",
        "\x00",
        "\x1b[31mred\x1b[0m\x07",
        "tab\tnew\nline\r\n",
        "\u202eevil\u200b",
    ])
    @pytest.mark.parametrize("profile_name", ["x11_profile", "windows_profile"])
    def test_arbitrary_text_gets_structured_response(self, tmp_path, request, text, profile_name):
        app = make_app(tmp_path, request.getfixturevalue(profile_name), InterpreterExecutor())

        async def scenario():
            return [await app.simulate_keystrokes(text, 10), await app.paste_via_shell(text)]

        for response in asyncio.run(scenario()):
            assert isinstance(response["success"], bool)
            assert len(response["requestId"]) == 9
            if "\x00" in text:
                assert response["success"] is False
            else:
                assert response["success"] is True

    def test_ipc_delay_falls_back_to_config(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.config.set('keystroke_delay_ms', 15)
        app.config.set('hotkeys_enabled', False)

        async def scenario():
            await app.start()
            try:
                for delay in (None, "fast", [3], "7", -4):
                    await app.ipc.invoke('simulate-keystrokes', {'text': 'x', 'delay': delay})
            finally:
                app.shutdown()

        asyncio.run(scenario())
        delays = [call.args[2] for call in app.executor.calls if call.program == "xdotool"]
        assert delays == ["15", "15", "15", "7", "0"]

    def test_timeout_surfaces_in_response(self, tmp_path, x11_profile):
        executor = FakeExecutor([ExecutionResult.failure("Command timed out", timeout_ms=30000)])
        app = make_app(tmp_path, x11_profile, executor)
        response = asyncio.run(app.simulate_keystrokes("x" * 10, 10))
        assert response["success"] is False
        assert response["error"] == "Command timed out"
        assert response["timeout"] == 30000


# ---------------------------------------------------------------------------
# Clipboard and logs
# ---------------------------------------------------------------------------

class TestClipboardAndLogs:

    def test_get_clipboard_content(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile, clipboard=FakeClipboard("copied"))
        assert asyncio.run(app.get_clipboard_content()) == {'success': True, 'content': 'copied'}

    def test_get_clipboard_content_failure(self, tmp_path):
        # Real SystemClipboard with no helper installed
        app = OblyskApp(config_path=str(tmp_path / "cfg.json"))
        app._init_platform(make_profile(OSFamily.LINUX, DisplayServer.X11, ()), FakeExecutor())
        result = asyncio.run(app.get_clipboard_content())
        assert result['success'] is False
        assert "No clipboard reader found" in result['error']

    def test_set_local_clipboard(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        assert asyncio.run(app.set_local_clipboard("abc")) is True
        assert app.clipboard.writes == ["abc"]

    def test_renderer_log_and_main_process_logs(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.install_log_buffer()
        try:
            app.renderer_log({'level': 'warn', 'message': 'cell empty', 'data': {'cell': 3}})
            logs = app.get_main_process_logs()
        finally:
            app.remove_log_buffer()
        assert logs[0]['category'] == 'renderer'
        assert logs[0]['level'] == 'warn'
        assert logs[0]['data'] == {'cell': 3}

    def test_logs_forwarded_to_window(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        window = Window(app)
        app.context.window = window
        app.install_log_buffer()
        try:
            logging.getLogger('oblysk.test').info("hello", extra={"category": "test"})
        finally:
            app.remove_log_buffer()
        forwarded = window.of(EventType.MAIN_PROCESS_LOG)
        assert forwarded[-1]['message'] == "hello"
        assert forwarded[-1]['category'] == "test"

    def test_logging_subscriber_does_not_recurse(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.context.window = object()
        sub_logger = logging.getLogger('oblysk.subscriber')
        app.event_bus.subscribe(EventType.MAIN_PROCESS_LOG, lambda e: sub_logger.info("saw log"))
        app.install_log_buffer()
        try:
            logging.getLogger('oblysk.test').info("first")
        finally:
            app.remove_log_buffer()
        messages = [e['message'] for e in app.get_main_process_logs()]
        assert messages == ["saw log", "first"]

    def test_show_debug_info_limits_to_20(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        window = Window(app)
        app.context.window = window
        for i in range(30):
            app.log_buffer.record("info", "t", str(i))
        logs = app.show_debug_info()
        assert len(logs) == 20
        assert logs[0]['message'] == "29"
        assert window.of(EventType.SHOW_DEBUG_LOGS) == [logs]

    def test_export_logs(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.log_buffer.record("info", "t", "exported")
        path = app.export_logs(str(tmp_path / "out.json"))
        with open(path, encoding="utf-8") as f:
            assert json.load(f)["logs"][0]["message"] == "exported"

    def test_export_logs_failure(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert app.export_logs(str(blocker / "sub" / "out.json")) is None


# ---------------------------------------------------------------------------
# Hotkeys
# ---------------------------------------------------------------------------

class TestHotkeys:

    def test_default_bindings(self):
        accelerators = [a for a, _e, _p in default_hotkeys()]
        assert len(accelerators) == 22
        assert len(set(accelerators)) == 22
        assert "CommandOrControl+Alt+num5" in accelerators

    def test_setup_without_listener_reports_failure(self, tmp_path, windows_profile):
        app = make_app(tmp_path, windows_profile)
        window = Window(app)
        app.context.window = window
        summary = app.setup_hotkeys()
        assert summary['registered'] == 0
        assert summary['total'] == 22
        assert summary['success'] is False
        assert window.of(EventType.HOTKEY_REGISTRATION_COMPLETE) == [summary]

    def test_setup_and_trigger(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        window = Window(app)
        app.context.window = window
        listener = FakeListener()
        app.hotkeys = HotkeyManager(listener)

        summary = app.setup_hotkeys()
        assert summary == {'success': True, 'registered': 22, 'total': 22, 'failed': []}

        listener.fire("CommandOrControl+Alt+num3")
        listener.fire("CommandOrControl+Alt+V")
        listener.fire("CommandOrControl+Alt+O")
        assert window.of(EventType.PASTE_CELL) == [3]
        assert window.of(EventType.PASTE_ON_DECK) == [None]
        assert len(window.of(EventType.TOGGLE_WINDOW)) == 1

    def test_setup_twice_does_not_duplicate(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        listener = FakeListener()
        app.hotkeys = HotkeyManager(listener)
        app.setup_hotkeys()
        app.setup_hotkeys()
        assert len(listener.bindings) == 22

    def test_test_hotkeys(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.hotkeys = HotkeyManager(FakeListener())
        app.setup_hotkeys()
        report = app.test_hotkeys()
        assert report['registered'] == report['total'] == 22
        assert report['failedKeys'] == []
        assert report['platform'] == "Linux (X11)"

    def test_test_hotkeys_before_setup(self, tmp_path, macos_profile):
        report = make_app(tmp_path, macos_profile).test_hotkeys()
        assert report['success'] is False
        assert report['total'] == 22
        assert len(report['failedKeys']) == 22


# ---------------------------------------------------------------------------
# Window and lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:

    def test_events_dropped_without_window(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        received = []
        app.event_bus.subscribe_all(received.append)
        app.minimize_window()
        assert received == []

    def test_attach_starts_and_detach_stops_monitor(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile, clipboard=FakeClipboard("start"))
        app.config.set('clipboard_poll_interval', 0.1)

        async def scenario():
            window = Window(app)
            await app.attach_window(window)
            running = app.context.monitor.is_running
            app.clipboard.text = "changed"
            await asyncio.sleep(0.25)
            app.detach_window()
            return window, running

        window, running = asyncio.run(scenario())
        assert running
        assert window.of(EventType.CLIPBOARD_CHANGED) == ["changed"]
        assert not app.context.monitor.is_running
        assert app.context.window is None

    def test_monitor_disabled_by_config(self, tmp_path, x11_profile):
        app = make_app(tmp_path, x11_profile)
        app.config.set('clipboard_monitor_enabled', False)
        asyncio.run(app.attach_window(object()))
        assert app.context.monitor is None

    def test_ipc_surface_after_start(self, tmp_path, windows_profile):
        app = make_app(tmp_path, windows_profile, clipboard=FakeClipboard("ipc"))

        async def scenario():
            await app.start()
            try:
                content = await app.ipc.invoke('get-clipboard-content')
                typed = await app.ipc.invoke('simulate-keystrokes', {'text': 'ok', 'delay': 0})
                await app.ipc.send('set-local-clipboard', 'from ui')
                return content, typed
            finally:
                app.shutdown()

        content, typed = asyncio.run(scenario())
        assert content == {'success': True, 'content': 'ipc'}
        assert typed['success'] is True
        assert app.clipboard.writes == ['from ui']

    def test_run_until_quit(self, tmp_path, windows_profile):
        app = make_app(tmp_path, windows_profile)
        app.config.set('clipboard_poll_interval', 0.1)

        async def scenario():
            window = Window(app)
            asyncio.get_running_loop().call_later(0.05, app.request_quit)
            await app.run(window)
            return window

        window = asyncio.run(scenario())
        assert app.context.quitting
        assert len(window.of(EventType.APP_QUIT)) == 1
        assert len(window.of(EventType.HOTKEY_REGISTRATION_COMPLETE)) == 0  # dropped before attach
        assert not app.context.monitor.is_running

    def test_close_app_over_ipc(self, tmp_path, windows_profile):
        app = make_app(tmp_path, windows_profile)

        async def scenario():
            await app.start()
            await app.ipc.send('close-app')
            app.shutdown()

        asyncio.run(scenario())
        assert app.context.quitting
