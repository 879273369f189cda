"""EventBus — pub/sub between the dispatch layer and the UI collaborator."""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from typing import Any, Callable

from oblysk.core.events import Event, EventType

logger = logging.getLogger(__name__)

Handler = Callable[[Event], None]


class EventBus:
    """Lightweight synchronous pub/sub bus.

    Handlers registered with :meth:`subscribe_all` receive every event; this
    is how a UI collaborator bridges the bus onto its own channels.
    """

    def __init__(self):
        self._handlers: dict[EventType, list[Handler]] = defaultdict(list)
        self._wildcard: list[Handler] = []

    def subscribe(self, event_type: EventType, handler: Handler) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def subscribe_all(self, handler: Handler) -> None:
        """Register a handler for every event type."""
        self._wildcard.append(handler)

    def unsubscribe(self, event_type: EventType | None, handler: Handler) -> None:
        """Remove a previously registered handler (``None`` = wildcard)."""
        handlers = self._wildcard if event_type is None else self._handlers[event_type]
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    def publish(self, event: Event) -> None:
        """Dispatch event to all registered handlers synchronously."""
        for handler in list(self._handlers.get(event.type, [])) + list(self._wildcard):
            try:
                handler(event)
            except Exception:
                # Not logged through the ring buffer: a failing log listener
                # would recurse straight back in here.
                if event.type is not EventType.MAIN_PROCESS_LOG:
                    logger.exception("EventBus handler error for %s", event.type)

    def emit(self, event_type: EventType, data: Any = None) -> Event:
        """Build a timestamped event and publish it."""
        event = Event(type=event_type, data=data, timestamp=time.time())
        self.publish(event)
        return event
