"""KeystrokeSimulator — batched, paced keystroke delivery."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

import oblysk.log  # registers SUCCESS level and logger.success()
from oblysk.exceptions import ToolUnavailableError
from oblysk.input.backends import InputBackend
from oblysk.platform.executor import CommandExecutor, ExecutionResult

if TYPE_CHECKING:
    from oblysk.input.paste import ClipboardPasteDispatcher

logger = logging.getLogger(__name__)

WARMUP_DELAY_MS = 200
BATCH_BUDGET_MS = 200
MAX_BATCH_SIZE = 20
MAX_PAUSE_FACTOR = 5


def compute_batch_size(delay_ms: int, max_batch: int = MAX_BATCH_SIZE) -> int:
    """``clamp(floor(200 / delay_ms), 1, max_batch)``; no delay means max_batch."""
    if delay_ms <= 0:
        return max_batch
    return max(1, min(max_batch, BATCH_BUDGET_MS // delay_ms))


def inter_batch_pause_ms(delay_ms: int, batch_size: int) -> int:
    return max(0, delay_ms) * min(batch_size, MAX_PAUSE_FACTOR)


class KeystrokeSimulator:
    """Types text through the selected :class:`InputBackend`.

    Paced backends (SendKeys) get the text in batches, strictly one process
    at a time; a failed batch is recorded and the rest still run.  Other
    backends receive the whole string in one invocation and do their own
    per-key pacing.
    """

    def __init__(
        self,
        backend: InputBackend,
        executor: CommandExecutor,
        paste_dispatcher: "ClipboardPasteDispatcher | None" = None,
    ):
        self.backend = backend
        self.executor = executor
        self.paste_dispatcher = paste_dispatcher
        self._sleep = asyncio.sleep

    async def simulate(self, text: str, delay_ms: int, request_id: str) -> ExecutionResult:
        extra = {"category": "paste"}
        if not text:
            logger.debug("[%s] Empty text, nothing to type", request_id, extra=extra)
            return ExecutionResult(success=True, method=self.backend.typing.name, message="Nothing to type")

        limit = self.backend.keystroke_length_limit
        if limit is not None and len(text) >= limit and self.paste_dispatcher is not None:
            logger.info(
                "[%s] %d chars >= %d, using clipboard paste instead of keystrokes",
                request_id, len(text), limit, extra=extra,
            )
            return await self.paste_dispatcher.paste_via_clipboard(text, request_id)

        try:
            if self.backend.paced:
                return await self._simulate_batched(text, delay_ms, request_id)
            command = self.backend.typing_command(text, delay_ms)
        except ToolUnavailableError as exc:
            logger.error("[%s] %s", request_id, exc, extra=extra)
            return ExecutionResult.failure(str(exc), method="none")

        logger.info("[%s] Typing %d chars via %s", request_id, len(text), command.method, extra=extra)
        return await self.executor.execute(
            command.program, command.args, command.timeout_ms, request_id, method=command.method,
        )

    async def _simulate_batched(self, text: str, delay_ms: int, request_id: str) -> ExecutionResult:
        extra = {"category": "paste"}
        batch_size = compute_batch_size(delay_ms, self.backend.typing.max_batch or MAX_BATCH_SIZE)
        pause_ms = inter_batch_pause_ms(delay_ms, batch_size)
        errors: list[str] = []
        started = time.monotonic()

        logger.info(
            "[%s] Batched keystrokes: %d chars, batch=%d, pause=%dms",
            request_id, len(text), batch_size, pause_ms, extra=extra,
        )

        # Let the target window regain focus
        await self._sleep(WARMUP_DELAY_MS / 1000.0)

        for index in range(0, len(text), batch_size):
            command = self.backend.typing_command(text[index:index + batch_size], delay_ms)
            result = await self.executor.execute(
                command.program, command.args, command.timeout_ms, request_id,
                method=command.method,
            )
            if not result.success:
                logger.warning(
                    "[%s] Batch error at position %d", request_id, index,
                    extra={"category": "paste", "data": {"error": result.error}},
                )
                errors.append(f"Position {index}: {result.error}")
            if index + batch_size < len(text):
                await self._sleep(pause_ms / 1000.0)

        success = not errors
        log = logger.success if success else logger.warning  # type: ignore[attr-defined]
        log("[%s] Batched keystrokes complete with %d errors", request_id, len(errors), extra=extra)
        return ExecutionResult(
            success=success,
            method=self.backend.typing.name,
            duration_ms=int((time.monotonic() - started) * 1000),
            message="Keystrokes completed" if success else f"Completed with {len(errors)} errors",
            errors=errors or None,
        )
