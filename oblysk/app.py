"""OblyskApp — top-level process controller.

Owns the :class:`AppContext`, wires the dispatch components to the IPC
request surface and drives the two background activities (clipboard
monitor, global hotkeys).
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from datetime import date
from typing import Any

import oblysk.log  # registers SUCCESS level and logger.success()
from oblysk.config import ConfigManager
from oblysk.core.clipboard_monitor import ClipboardMonitor
from oblysk.core.context import AppContext
from oblysk.core.dispatch import DispatchRequest, DispatchResponse, Operation, new_request_id
from oblysk.core.events import EventType
from oblysk.core.log_buffer import LogEntry, LogRingBuffer, RingBufferHandler
from oblysk.exceptions import OblyskError, ToolUnavailableError
from oblysk.ipc import IpcRouter
from oblysk.log import level_number
from oblysk.platform.executor import ExecutionResult

logger = logging.getLogger(__name__)

DEBUG_LOG_LIMIT = 20


def default_hotkeys() -> list[tuple[str, EventType, Any]]:
    """``(accelerator, event, payload)`` for the 22 built-in bindings."""
    bindings: list[tuple[str, EventType, Any]] = []
    for i in range(1, 10):
        bindings.append((f"CommandOrControl+Alt+{i}", EventType.PASTE_CELL, i))
        bindings.append((f"CommandOrControl+Alt+num{i}", EventType.PASTE_CELL, i))
    bindings += [
        ("CommandOrControl+Alt+O", EventType.TOGGLE_WINDOW, None),
        ("CommandOrControl+Alt+C", EventType.COPY_TO_NOTEPAD, None),
        ("CommandOrControl+Alt+V", EventType.PASTE_ON_DECK, None),
        ("CommandOrControl+Alt+R", EventType.REVERSE_COPY, None),
    ]
    return bindings


class OblyskApp:
    """Single-process application combining the dispatch layer and its triggers.

    ``_init_platform()`` is separated from ``__init__`` so that tests
    can inject mocks without touching real clipboard or input tools.
    """

    def __init__(self, debug: bool = False, config_path: str | None = None):
        self.debug = debug
        self.config = ConfigManager(config_path=config_path, debug=debug)
        if debug:
            self.config.set('debug', True)

        self.context = AppContext()
        self.event_bus = self.context.event_bus
        self.log_buffer = LogRingBuffer(self.config.get('log_max_entries'))
        self.ipc = IpcRouter(self.event_bus)

        # Platform components, created by _init_platform()
        self.profile = None
        self.executor = None
        self.clipboard = None
        self.backend = None
        self.paste_dispatcher = None
        self.keystrokes = None
        self.hotkeys = None

        self._log_handler: RingBufferHandler | None = None
        self._forwarding = threading.local()
        self._stop_event: asyncio.Event | None = None

    # ------------------------------------------------------------------
    # Platform initialisation (lazy, for testability)
    # ------------------------------------------------------------------

    def _init_platform(self, profile=None, executor=None, clipboard=None) -> None:
        from oblysk.input.backends import select_backend
        from oblysk.input.keystrokes import KeystrokeSimulator
        from oblysk.input.paste import ClipboardPasteDispatcher
        from oblysk.platform.clipboard import SystemClipboard
        from oblysk.platform.executor import CommandExecutor
        from oblysk.platform.profile import resolve_profile

        self.profile = profile or resolve_profile()
        self.executor = executor or CommandExecutor()
        self.clipboard = clipboard or SystemClipboard(self.profile, self.executor)
        self.backend = select_backend(self.profile)
        self.paste_dispatcher = ClipboardPasteDispatcher(self.backend, self.executor, self.clipboard)
        self.keystrokes = KeystrokeSimulator(self.backend, self.executor, self.paste_dispatcher)

    @property
    def platform(self) -> str:
        return self.profile.label if self.profile is not None else "unknown"

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def install_log_buffer(self) -> None:
        """Feed the ``oblysk`` logger into the ring buffer and the UI."""
        if self._log_handler is not None:
            return
        root = logging.getLogger('oblysk')
        if root.level == logging.NOTSET or root.level > logging.DEBUG:
            root.setLevel(logging.DEBUG)
        self._log_handler = RingBufferHandler(self.log_buffer)
        root.addHandler(self._log_handler)
        self.log_buffer.add_listener(self._forward_log_entry)

    def remove_log_buffer(self) -> None:
        if self._log_handler is None:
            return
        logging.getLogger('oblysk').removeHandler(self._log_handler)
        self.log_buffer.remove_listener(self._forward_log_entry)
        self._log_handler = None

    def _forward_log_entry(self, entry: LogEntry) -> None:
        # A subscriber that logs while handling main-process-log must not recurse
        if getattr(self._forwarding, 'active', False):
            return
        self._forwarding.active = True
        try:
            self.context.send(EventType.MAIN_PROCESS_LOG, entry.to_dict())
        finally:
            self._forwarding.active = False

    # ------------------------------------------------------------------
    # IPC wiring
    # ------------------------------------------------------------------

    def _wire_ipc(self) -> None:
        self.ipc.handle('simulate-keystrokes', self._on_simulate_keystrokes)
        self.ipc.handle('paste-via-clipboard', self.paste_via_clipboard)
        self.ipc.handle('paste-powershell', self.paste_via_shell)
        self.ipc.handle('test-hotkeys', self.test_hotkeys)
        self.ipc.handle('get-clipboard-content', self.get_clipboard_content)
        self.ipc.handle('get-main-process-logs', self.get_main_process_logs)

        self.ipc.on('minimize-window', self.minimize_window)
        self.ipc.on('close-app', self.request_quit)
        self.ipc.on('set-local-clipboard', self.set_local_clipboard)
        self.ipc.on('renderer-log', self.renderer_log)

    async def _on_simulate_keystrokes(self, payload: dict) -> dict:
        return await self.simulate_keystrokes(
            str(payload.get('text') or ''), self._coerce_delay(payload.get('delay')),
        )

    def _coerce_delay(self, raw) -> int:
        """Collaborator-supplied delay; anything unusable means the configured default."""
        default = self.config.get('keystroke_delay_ms')
        if raw is None or isinstance(raw, bool):
            return default
        try:
            value = int(raw)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Invalid keystroke delay %r, using %dms", raw, default, extra={"category": "paste"})
            return default
        return max(value, 0)

    # ------------------------------------------------------------------
    # Dispatch requests
    # ------------------------------------------------------------------

    def _respond(self, request: DispatchRequest, result: ExecutionResult, duration_ms: int | None = None) -> dict:
        extra = {"category": "paste"}
        label = request.operation.value
        if result.success:
            logger.success("[%s] %s dispatch completed", request.request_id, label, extra=extra)  # type: ignore[attr-defined]
        else:
            logger.error(
                "[%s] %s dispatch failed", request.request_id, label,
                extra={"category": "paste", "data": {"error": result.error, "errors": result.errors}},
            )
        return DispatchResponse(request, result, self.platform, duration_ms).to_dict()

    async def simulate_keystrokes(self, text: str, delay_ms: int | None = None) -> dict:
        if delay_ms is None:
            delay_ms = self.config.get('keystroke_delay_ms')
        request = DispatchRequest(text, Operation.KEYSTROKES, delay_ms)
        logger.info(
            "[%s] Keystroke simulation: %d chars, %dms delay",
            request.request_id, len(text), delay_ms, extra={"category": "paste"},
        )
        started = time.monotonic()
        result = await self.keystrokes.simulate(text, delay_ms, request.request_id)
        return self._respond(request, result, int((time.monotonic() - started) * 1000))

    async def paste_via_clipboard(self, text: str) -> dict:
        request = DispatchRequest(text, Operation.CLIPBOARD_PASTE)
        result = await self.paste_dispatcher.paste_via_clipboard(text, request.request_id)
        return self._respond(request, result)

    async def paste_via_shell(self, text: str) -> dict:
        """Generic shell paste; Linux types the text with ``shell_paste_delay_ms``."""
        request = DispatchRequest(text, Operation.SHELL_PASTE, self.config.get('shell_paste_delay_ms'))
        logger.info("[%s] Shell paste: %d chars", request.request_id, len(text), extra={"category": "paste"})
        try:
            command = self.backend.shell_paste_command(text)
        except ToolUnavailableError as exc:
            return self._respond(request, ExecutionResult.failure(str(exc), method="none"))

        if command is None:
            result = await self.keystrokes.simulate(text, request.delay_ms, request.request_id)
        else:
            result = await self.executor.execute(
                command.program, command.args, command.timeout_ms, request.request_id,
                method=command.method,
            )
        return self._respond(request, result)

    async def get_clipboard_content(self) -> dict:
        try:
            content = await self.clipboard.read_text()
        except OblyskError as exc:
            logger.error("Failed to get clipboard", extra={"category": "reverse-copy", "data": {"error": str(exc)}})
            return {'success': False, 'error': str(exc)}
        logger.info("Retrieved clipboard: %d chars", len(content), extra={"category": "reverse-copy"})
        return {'success': True, 'content': content}

    async def set_local_clipboard(self, text: str) -> bool:
        try:
            await self.clipboard.write_text(text, new_request_id())
        except OblyskError as exc:
            logger.error("Failed to set clipboard", extra={"category": "reverse-copy", "data": {"error": str(exc)}})
            return False
        logger.success("Set clipboard: %d chars", len(text), extra={"category": "reverse-copy"})  # type: ignore[attr-defined]
        return True

    def get_main_process_logs(self) -> list[dict]:
        return [entry.to_dict() for entry in self.log_buffer.entries()]

    def renderer_log(self, payload: dict) -> None:
        """Record a log line coming from the UI collaborator."""
        logger.log(
            level_number(payload.get('level', 'info')),
            str(payload.get('message', '')),
            extra={"category": "renderer", "data": payload.get('data')},
        )

    # ------------------------------------------------------------------
    # Hotkeys
    # ------------------------------------------------------------------

    def _make_hotkey_manager(self):
        from oblysk.input.hotkeys import EVDEV_AVAILABLE, EvdevHotkeyListener, HotkeyManager
        from oblysk.platform.profile import OSFamily

        listener = None
        if self.profile.family is OSFamily.LINUX and EVDEV_AVAILABLE:
            listener = EvdevHotkeyListener()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        return HotkeyManager(listener, loop)

    def setup_hotkeys(self) -> dict:
        """(Re)register the built-in hotkeys and announce the outcome."""
        extra = {"category": "hotkeys"}
        if self.hotkeys is None:
            self.hotkeys = self._make_hotkey_manager()
        self.hotkeys.unregister_all()

        failed = []
        for accelerator, event_type, payload in default_hotkeys():
            ok = self.hotkeys.register(accelerator, self._hotkey_callback(accelerator, event_type, payload))
            if not ok:
                failed.append(accelerator)

        bindings = [a for a, _e, _p in default_hotkeys()]
        registered = len(bindings) - len(failed)
        logger.info("Registered %d global hotkeys", registered, extra=extra)
        if failed:
            logger.warning(
                "Failed to register %d hotkeys", len(failed),
                extra={"category": "hotkeys", "data": {"failed": failed}},
            )
        summary = {
            'success': registered > 0,
            'registered': registered,
            'total': len(bindings),
            'failed': failed,
        }
        self.context.send(EventType.HOTKEY_REGISTRATION_COMPLETE, summary)
        return summary

    def _hotkey_callback(self, accelerator: str, event_type: EventType, payload: Any):
        def _fire() -> None:
            logger.info("Hotkey %s triggered", accelerator, extra={"category": "hotkey"})
            if event_type is EventType.TOGGLE_WINDOW:
                self.toggle_window()
            else:
                self.context.send(event_type, payload)
        return _fire

    def test_hotkeys(self) -> dict:
        bindings = [a for a, _e, _p in default_hotkeys()]
        if self.hotkeys is None:
            from oblysk.input.hotkeys import HotkeyManager
            report = HotkeyManager().report(bindings, self.platform)
        else:
            report = self.hotkeys.report(bindings, self.platform)
        logger.info("Hotkey test complete", extra={"category": "ipc", "data": report})
        return report

    # ------------------------------------------------------------------
    # Window collaborator
    # ------------------------------------------------------------------

    async def attach_window(self, window: Any) -> None:
        """Attach the UI collaborator and (re)start clipboard monitoring."""
        self.context.window = window
        logger.info("Window attached", extra={"category": "window"})
        if self.config.get('clipboard_monitor_enabled'):
            await self.start_clipboard_monitor()

    def detach_window(self) -> None:
        """Tear down: stop sending events and stop the monitor."""
        self.stop_clipboard_monitor()
        self.context.window = None
        logger.info("Main window closed", extra={"category": "window"})

    def toggle_window(self) -> None:
        self.context.send(EventType.TOGGLE_WINDOW)

    def minimize_window(self) -> None:
        logger.info("Minimize requested via IPC", extra={"category": "window"})
        self.context.send(EventType.MINIMIZE_WINDOW)

    def show_debug_info(self) -> list[dict]:
        logs = [entry.to_dict() for entry in self.log_buffer.entries(DEBUG_LOG_LIMIT)]
        self.context.send(EventType.SHOW_DEBUG_LOGS, logs)
        return logs

    def export_logs(self, path: str | None = None) -> str | None:
        if path is None:
            desktop = os.path.expanduser('~/Desktop')
            folder = desktop if os.path.isdir(desktop) else os.path.expanduser('~')
            path = os.path.join(folder, f"oblysk-logs-{date.today().isoformat()}.json")
        try:
            self.log_buffer.export(path)
        except OSError as exc:
            logger.error("Failed to export logs", extra={"category": "debug", "data": {"error": str(exc)}})
            return None
        logger.success("Logs exported to %s", path, extra={"category": "debug"})  # type: ignore[attr-defined]
        return path

    # ------------------------------------------------------------------
    # Clipboard monitor
    # ------------------------------------------------------------------

    def _on_clipboard_changed(self, text: str) -> None:
        self.context.send(EventType.CLIPBOARD_CHANGED, text)

    async def start_clipboard_monitor(self) -> None:
        if self.context.monitor is None:
            self.context.monitor = ClipboardMonitor(
                self.clipboard,
                self._on_clipboard_changed,
                interval=self.config.get('clipboard_poll_interval'),
            )
        await self.context.monitor.start()

    def stop_clipboard_monitor(self) -> None:
        if self.context.monitor is not None:
            self.context.monitor.stop()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        self.install_log_buffer()
        if self.profile is None:
            self._init_platform()
        self._wire_ipc()
        self._stop_event = asyncio.Event()
        if self.config.get('hotkeys_enabled'):
            self.setup_hotkeys()
        logger.success("Oblysk started on %s", self.platform, extra={"category": "startup"})  # type: ignore[attr-defined]

    def request_quit(self) -> None:
        logger.info("Quit requested", extra={"category": "app"})
        self.context.quitting = True
        self.context.send(EventType.APP_QUIT)
        if self._stop_event is not None:
            self._stop_event.set()

    async def run(self, window: Any = None) -> None:
        """Start, attach *window* (if any) and wait until quit is requested."""
        await self.start()
        if window is not None:
            await self.attach_window(window)
        try:
            await self._stop_event.wait()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        logger.info("Oblysk quitting, cleaning up", extra={"category": "app"})
        self.context.quitting = True
        if self.hotkeys is not None:
            self.hotkeys.close()
        self.stop_clipboard_monitor()
        self.remove_log_buffer()
