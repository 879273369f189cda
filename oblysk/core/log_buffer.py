"""LogRingBuffer — bounded newest-first log shared with the UI collaborator.

Every Oblysk module logs through the standard ``logging`` module.
:class:`RingBufferHandler` is attached to the ``oblysk`` logger and turns
each record into an immutable :class:`LogEntry` inside the buffer, so the
console, the log file and the UI see the same stream.

Category and structured data are passed with ``extra``::

    logger.info("Clipboard paste: %d chars", n,
                extra={"category": "paste", "data": {"chars": n}})
"""

from __future__ import annotations

import logging
import os
import platform
import sys
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from oblysk.log import level_name
from oblysk.persistence import save_json

DEFAULT_MAX_ENTRIES = 200

LEVELS = ("debug", "info", "warn", "error", "success")


@dataclass(frozen=True)
class LogEntry:
    timestamp: str
    level: str
    category: str
    message: str
    data: Any
    pid: int

    def to_dict(self) -> dict:
        return asdict(self)


class LogRingBuffer:
    """Bounded ordered log, newest entry first.

    Inserts are O(1) (``deque.appendleft`` with ``maxlen``); once the buffer
    is full the oldest entry falls off the tail.  Access is serialized with a
    lock because the hotkey listener thread logs too.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._listeners: list[Callable[[LogEntry], None]] = []

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def add_listener(self, listener: Callable[[LogEntry], None]) -> None:
        """Call *listener* with every new entry (after it is stored)."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[LogEntry], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def record(self, level: str, category: str, message: str, data: Any = None) -> LogEntry:
        """Create an entry and push it to the front of the buffer."""
        level = level if level in LEVELS else "info"
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            level=level,
            category=category,
            message=message,
            data=data,
            pid=os.getpid(),
        )
        with self._lock:
            self._entries.appendleft(entry)
        for listener in list(self._listeners):
            listener(entry)
        return entry

    def entries(self, limit: int | None = None) -> list[LogEntry]:
        """Return a snapshot of the entries, newest first."""
        with self._lock:
            items = list(self._entries)
        return items if limit is None else items[:limit]

    def export(self, path: str) -> str:
        """Write all entries as JSON to *path* atomically; returns the path."""
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "platform": platform.platform(),
            "python_version": sys.version.split()[0],
            "logs": [e.to_dict() for e in self.entries()],
        }
        save_json(path, payload)
        return path


class RingBufferHandler(logging.Handler):
    """``logging`` handler that records into a :class:`LogRingBuffer`."""

    def __init__(self, buffer: LogRingBuffer, level: int = logging.DEBUG):
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            category = getattr(record, "category", None) or record.name.rsplit(".", 1)[-1]
            self.buffer.record(
                level_name(record.levelno),
                category,
                record.getMessage(),
                getattr(record, "data", None),
            )
        except Exception:
            self.handleError(record)
