"""IpcRouter — the request surface offered to the UI collaborator.

Only whitelisted channels are accepted; anything else is a programming error
and raises :class:`ChannelNotAllowedError`.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable

from oblysk.core.event_bus import EventBus
from oblysk.core.events import Event, EventType
from oblysk.exceptions import ChannelNotAllowedError

logger = logging.getLogger(__name__)

# Request → response
INVOKE_CHANNELS = (
    "simulate-keystrokes",
    "paste-via-clipboard",
    "paste-powershell",
    "test-hotkeys",
    "get-clipboard-content",
    "get-main-process-logs",
)

# Fire-and-forget requests
SEND_CHANNELS = (
    "minimize-window",
    "close-app",
    "set-local-clipboard",
    "renderer-log",
)

# Events toward the collaborator
RECEIVE_CHANNELS = (
    "paste-cell",
    "copy-to-notepad",
    "clipboard-changed",
    "paste-on-deck",
    "reverse-copy",
    "hotkey-registration-complete",
    "main-process-log",
    "show-debug-logs",
)


class IpcRouter:
    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus
        self._invoke_handlers: dict[str, Callable[..., Any]] = {}
        self._send_handlers: dict[str, Callable[..., Any]] = {}

    # -- registration (main side) ----------------------------------------

    def handle(self, channel: str, handler: Callable[..., Any]) -> None:
        """Register the handler answering an invoke channel."""
        self._check(channel, INVOKE_CHANNELS, "invoke")
        self._invoke_handlers[channel] = handler

    def on(self, channel: str, handler: Callable[..., Any]) -> None:
        """Register the handler of a send channel."""
        self._check(channel, SEND_CHANNELS, "send")
        self._send_handlers[channel] = handler

    # -- collaborator side -----------------------------------------------

    async def invoke(self, channel: str, *args: Any) -> Any:
        self._check(channel, INVOKE_CHANNELS, "invoke")
        handler = self._invoke_handlers.get(channel)
        if handler is None:
            raise ChannelNotAllowedError(f"No handler registered for channel: {channel}")
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def send(self, channel: str, *args: Any) -> None:
        self._check(channel, SEND_CHANNELS, "send")
        handler = self._send_handlers.get(channel)
        if handler is None:
            logger.warning("No handler for send channel %s", channel, extra={"category": "ipc"})
            return
        result = handler(*args)
        if inspect.isawaitable(result):
            await result

    def subscribe(self, channel: str, func: Callable[[Any], None]) -> Callable[[Event], None]:
        """Listen on a receive channel; *func* gets the event payload."""
        self._check(channel, RECEIVE_CHANNELS, "on")
        event_type = EventType(channel)

        def _deliver(event: Event) -> None:
            func(event.data)

        self.event_bus.subscribe(event_type, _deliver)
        return _deliver

    @staticmethod
    def _check(channel: str, allowed: tuple, kind: str) -> None:
        if channel not in allowed:
            raise ChannelNotAllowedError(f"IPC {kind} not allowed for channel: {channel}")
