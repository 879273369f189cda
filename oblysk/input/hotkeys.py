"""Global hotkeys — a trigger source for dispatch requests.

On Linux the :class:`EvdevHotkeyListener` reads keyboards directly from
``/dev/input`` (the user must be in the ``input`` group), so it works on
both X11 and Wayland.  Other platforms have no listener and every
registration reports failure.
"""

from __future__ import annotations

import asyncio
import logging
import selectors
import threading
from typing import Any, Callable, Iterable

import oblysk.log  # registers TRACE level and logger.trace()
from oblysk.input.key_mapper import Hotkey, modifier_for_keycode, parse_accelerator

try:
    import evdev
    from evdev import ecodes

    EVDEV_AVAILABLE = True
except ImportError:  # pragma: no cover
    evdev = None  # type: ignore[assignment]
    ecodes = None  # type: ignore[assignment]
    EVDEV_AVAILABLE = False

logger = logging.getLogger(__name__)

# EV_KEY type / KEY_A constants (used when evdev is not importable)
EV_KEY = 1
KEY_A = 30

KEY_RELEASE, KEY_PRESS = 0, 1


class EvdevHotkeyListener:
    """Watches every keyboard device on a daemon thread and fires bindings."""

    def __init__(self):
        self.devices: dict[str, Any] = {}
        self.selector = selectors.DefaultSelector()
        self._bindings: list[tuple[Hotkey, Callable[[], None]]] = []
        self._held: set[int] = set()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._running = False

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def scan_devices(self) -> int:
        """Open every readable keyboard; returns how many were added."""
        if not EVDEV_AVAILABLE:  # pragma: no cover
            logger.warning("evdev not available — global hotkeys disabled", extra={"category": "hotkeys"})
            return 0

        count = 0
        for path in evdev.list_devices():
            if path in self.devices:
                continue
            try:
                device = evdev.InputDevice(path)
            except OSError as exc:
                logger.debug("Cannot open %s: %s", path, exc, extra={"category": "hotkeys"})
                continue
            caps = device.capabilities()
            if KEY_A not in caps.get(ecodes.EV_KEY, []):
                device.close()
                continue
            self.devices[path] = device
            self.selector.register(device, selectors.EVENT_READ)
            count += 1
        return count

    @property
    def available(self) -> bool:
        return bool(self.devices) or self.scan_devices() > 0

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def add(self, hotkey: Hotkey, callback: Callable[[], None]) -> None:
        with self._lock:
            self._bindings.append((hotkey, callback))

    def clear(self) -> None:
        with self._lock:
            self._bindings.clear()

    def handle_event(self, event: Any) -> None:
        """Update modifier state and fire matching bindings on key press."""
        if getattr(event, "type", None) != EV_KEY:
            return
        code, value = event.code, event.value

        if modifier_for_keycode(code) is not None:
            # Held by keycode: left and right Ctrl are independent keys
            if value == KEY_RELEASE:
                self._held.discard(code)
            else:
                self._held.add(code)
            return

        if value != KEY_PRESS:
            return
        held = {modifier_for_keycode(held_code) for held_code in self._held}
        with self._lock:
            matched = [cb for hk, cb in self._bindings if hk.matches(code, held)]
        for callback in matched:
            logger.trace("hotkey code=%d modifiers=%s", code, sorted(held))  # type: ignore[attr-defined]
            try:
                callback()
            except Exception:
                logger.exception("Hotkey callback failed", extra={"category": "hotkeys"})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._running = True
        self._thread = threading.Thread(target=self._run, daemon=True, name="hotkeys")
        self._thread.start()

    def _run(self) -> None:
        while self._running:
            for key, _mask in self.selector.select(timeout=0.1):
                device = key.fileobj
                try:
                    for event in device.read():
                        self.handle_event(event)
                except OSError as exc:
                    logger.warning("Read error on %s: %s", device.name, exc, extra={"category": "hotkeys"})
                    self._remove(device)

    def _remove(self, device: Any) -> None:
        self.devices.pop(device.path, None)
        try:
            self.selector.unregister(device)
        except (KeyError, ValueError):
            pass
        try:
            device.close()
        except OSError:
            pass

    def stop(self) -> None:
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        for device in list(self.devices.values()):
            self._remove(device)


class HotkeyManager:
    """Registry of global hotkeys in accelerator notation.

    Callbacks run on the asyncio loop passed as *loop* (the listener thread
    hands them over with ``call_soon_threadsafe``); without a loop they run
    on the listener thread.
    """

    def __init__(self, listener: EvdevHotkeyListener | None = None, loop: asyncio.AbstractEventLoop | None = None):
        self.listener = listener
        self.loop = loop
        self._registered: dict[str, Hotkey] = {}

    def register(self, accelerator: str, callback: Callable[[], None]) -> bool:
        """Register *accelerator*; returns False when it cannot be honoured."""
        if accelerator in self._registered:
            return False
        try:
            hotkey = parse_accelerator(accelerator)
        except ValueError as exc:
            logger.error("Invalid hotkey %s: %s", accelerator, exc, extra={"category": "hotkeys"})
            return False
        if self.listener is None or not self.listener.available:
            return False

        self.listener.add(hotkey, self._marshal(callback))
        self.listener.start()
        self._registered[accelerator] = hotkey
        return True

    def _marshal(self, callback: Callable[[], None]) -> Callable[[], None]:
        loop = self.loop
        if loop is None:
            return callback
        return lambda: loop.call_soon_threadsafe(callback)

    def is_registered(self, accelerator: str) -> bool:
        return accelerator in self._registered

    @property
    def registered(self) -> list[str]:
        return list(self._registered)

    def unregister_all(self) -> None:
        if self.listener is not None:
            self.listener.clear()
        self._registered.clear()

    def report(self, accelerators: Iterable[str], platform: str) -> dict:
        """Registration status of *accelerators* (the ``test-hotkeys`` reply)."""
        registered, failed = [], []
        for accelerator in accelerators:
            (registered if self.is_registered(accelerator) else failed).append(accelerator)
        return {
            "success": bool(registered),
            "registered": len(registered),
            "total": len(registered) + len(failed),
            "registeredKeys": registered,
            "failedKeys": failed,
            "platform": platform,
        }

    def close(self) -> None:
        self.unregister_all()
        if self.listener is not None:
            self.listener.stop()
