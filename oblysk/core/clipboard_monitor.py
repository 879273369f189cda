"""ClipboardMonitor — polls the clipboard and reports changes.

Stopped → Running → Stopped.  The loop is an asyncio task; a tick never
suspends between comparing a read with the snapshot and overwriting it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol

import oblysk.log  # registers TRACE level and logger.trace()
from oblysk.exceptions import OblyskError

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.75


class ClipboardReader(Protocol):
    def read_text(self) -> Awaitable[str]: ...


@dataclass
class ClipboardSnapshot:
    text: str = ""
    observed_at: float = 0.0


class ClipboardMonitor:
    """Emit ``on_change(text)`` whenever the clipboard gets new non-empty text.

    Parameters:
        clipboard: Object with an async ``read_text()``.
        on_change: Called with the new text.
        interval:  Seconds between ticks.
    """

    def __init__(
        self,
        clipboard: ClipboardReader,
        on_change: Callable[[str], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.clipboard = clipboard
        self.on_change = on_change
        self.interval = interval
        self.snapshot = ClipboardSnapshot()
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Take the baseline snapshot and start polling (restarts if running)."""
        self.stop()
        extra = {"category": "clipboard"}
        logger.info("Starting clipboard monitoring", extra=extra)

        try:
            text = await self.clipboard.read_text()
        except (OblyskError, OSError) as exc:
            logger.warning(
                "Could not read initial clipboard",
                extra={"category": "clipboard", "data": {"error": str(exc)}},
            )
            text = ""
        self.snapshot = ClipboardSnapshot(text, time.time())
        logger.info("Initial clipboard content: %d chars", len(text), extra=extra)

        self._task = asyncio.get_running_loop().create_task(self._run(), name="clipboard-monitor")

    def stop(self) -> None:
        """Cancel polling; safe to call when already stopped."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Clipboard monitoring stopped", extra={"category": "clipboard"})

    async def poll_once(self) -> bool:
        """Run one tick; returns True when a change event was emitted."""
        try:
            text = await self.clipboard.read_text()
        except (OblyskError, OSError) as exc:
            # Transient read failures are normal under contention
            logger.trace(  # type: ignore[attr-defined]
                "Clipboard read error (normal)",
                extra={"category": "clipboard", "data": {"error": str(exc)}},
            )
            return False

        if not text or text == self.snapshot.text:
            return False

        previous = len(self.snapshot.text)
        self.snapshot = ClipboardSnapshot(text, time.time())
        logger.info(
            "Clipboard changed: %d -> %d chars", previous, len(text),
            extra={"category": "clipboard"},
        )
        self.on_change(text)
        return True

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            logger.trace("clipboard tick")  # type: ignore[attr-defined]
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Clipboard change handler failed", extra={"category": "clipboard"})
