"""AppContext — state owned by the top-level controller.

Replaces module-level globals (current window, quitting flag, monitor
handle).  Components receive the context by reference while they operate;
only :class:`oblysk.app.OblyskApp` mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from oblysk.core.event_bus import EventBus
from oblysk.core.events import EventType

if TYPE_CHECKING:
    from oblysk.core.clipboard_monitor import ClipboardMonitor


@dataclass
class AppContext:
    event_bus: EventBus = field(default_factory=EventBus)
    window: Any = None
    quitting: bool = False
    monitor: "ClipboardMonitor | None" = None

    @property
    def has_window(self) -> bool:
        return self.window is not None

    def send(self, event_type: EventType, data: Any = None) -> bool:
        """Emit an event toward the window collaborator.

        Dropped (returns False) while no window is attached, so nothing is
        dispatched into a destination that has been torn down.
        """
        if self.window is None:
            return False
        self.event_bus.emit(event_type, data)
        return True
