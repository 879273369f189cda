"""ClipboardPasteDispatcher — clipboard write followed by the paste shortcut.

Known limitation: another application may write the clipboard between our
write and the paste shortcut; the clipboard is not locked.
"""

from __future__ import annotations

import asyncio
import logging

import oblysk.log  # registers SUCCESS level and logger.success()
from oblysk.exceptions import ClipboardError, ToolUnavailableError
from oblysk.input.backends import InputBackend
from oblysk.platform.clipboard import SystemClipboard
from oblysk.platform.executor import CommandExecutor, ExecutionResult

logger = logging.getLogger(__name__)

SETTLE_DELAY_MS = 100


class ClipboardPasteDispatcher:
    def __init__(self, backend: InputBackend, executor: CommandExecutor, clipboard: SystemClipboard):
        self.backend = backend
        self.executor = executor
        self.clipboard = clipboard
        self._sleep = asyncio.sleep

    async def paste_via_clipboard(self, text: str, request_id: str) -> ExecutionResult:
        extra = {"category": "paste"}
        logger.info("[%s] Clipboard paste: %d chars", request_id, len(text), extra=extra)

        try:
            # Resolve the trigger first so a missing tool leaves the clipboard alone
            command = self.backend.paste_trigger_command()
            await self.clipboard.write_text(text, request_id)
        except (ToolUnavailableError, ClipboardError) as exc:
            logger.error("[%s] Clipboard paste failed: %s", request_id, exc, extra=extra)
            return ExecutionResult.failure(str(exc), method="clipboard")

        logger.info("[%s] Clipboard content set", request_id, extra=extra)
        await self._sleep(SETTLE_DELAY_MS / 1000.0)

        result = await self.executor.execute(
            command.program, command.args, command.timeout_ms, request_id, method=command.method,
        )
        if result.success:
            logger.success("[%s] Clipboard paste completed", request_id, extra=extra)  # type: ignore[attr-defined]
        return result.with_method("clipboard")
