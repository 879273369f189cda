"""CommandExecutor — one external process per call, bounded in time.

The child is always started with an argument array (never through a shell).
Exactly one of three outcomes resolves an invocation: the process exits,
the timer fires first (the process is killed and reaped), or the spawn
itself fails.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, replace
from typing import Sequence

import oblysk.log  # registers TRACE/SUCCESS levels

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Command timed out"

# Per-operation-class timeouts (milliseconds)
PASTE_TRIGGER_TIMEOUT_MS = 3000
SINGLE_SHOT_TIMEOUT_MS = 5000
LONG_TEXT_TIMEOUT_MS = 10000
BULK_TYPING_TIMEOUT_MS = 30000
CLIPBOARD_TIMEOUT_MS = 2000


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    output: str = ""
    error: str | None = None
    exit_code: int | None = None
    method: str = ""
    duration_ms: int = 0
    message: str | None = None
    errors: list | None = None
    timeout_ms: int | None = None

    @classmethod
    def failure(cls, error: str, method: str = "", **kwargs) -> "ExecutionResult":
        return cls(success=False, error=error, method=method, **kwargs)

    def with_method(self, method: str) -> "ExecutionResult":
        return replace(self, method=method)

    def to_dict(self) -> dict:
        """Wire shape for the UI collaborator (camelCase, unset keys dropped)."""
        names = {
            "exit_code": "exitCode",
            "duration_ms": "durationMs",
            "timeout_ms": "timeout",
        }
        return {
            names.get(key, key): value
            for key, value in asdict(self).items()
            if value is not None
        }


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


class CommandExecutor:
    """Runs external commands on the asyncio loop."""

    async def execute(
        self,
        program: str,
        args: Sequence[str] = (),
        timeout_ms: int = SINGLE_SHOT_TIMEOUT_MS,
        request_id: str = "unknown",
        *,
        method: str | None = None,
        input_text: str | None = None,
        capture: bool = True,
        quiet: bool = False,
    ) -> ExecutionResult:
        """Run ``program args...`` and report a structured result.

        Args:
            timeout_ms: Hard limit; the process is killed when it expires.
            method: Label stored in the result (defaults to *program*).
            input_text: Written to the child's stdin, then stdin is closed.
            capture: When False stdout/stderr go to ``/dev/null``.  Needed for
                tools that fork and keep the pipes open (``xclip``, ``wl-copy``).
            quiet: Log at TRACE instead of INFO/SUCCESS/ERROR, below the
                level the log buffer records.  Used by clipboard polling.
        """
        method = method or program
        log_start = logger.trace if quiet else logger.info  # type: ignore[attr-defined]
        log_ok = logger.trace if quiet else logger.success  # type: ignore[attr-defined]
        log_fail = logger.trace if quiet else logger.error  # type: ignore[attr-defined]
        extra = {"category": "command"}

        log_start("[%s] Executing command: %s %s", request_id, program, " ".join(args), extra=extra)

        started = time.monotonic()
        pipe = asyncio.subprocess.PIPE if capture else asyncio.subprocess.DEVNULL

        try:
            proc = await asyncio.create_subprocess_exec(
                program,
                *args,
                stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
                stdout=pipe,
                stderr=pipe,
            )
        except (OSError, ValueError) as exc:
            # ValueError: an argument holds a NUL byte and cannot reach argv
            log_fail(
                "[%s] Command error: %s", request_id, exc,
                extra={"category": "command", "data": {"error": str(exc)}},
            )
            return ExecutionResult.failure(
                str(exc), method=method, duration_ms=self._elapsed(started),
            )

        stdin_data = input_text.encode("utf-8") if input_text is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(stdin_data), timeout=timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            await self._kill(proc)
            log_fail("[%s] Command timed out after %dms", request_id, timeout_ms, extra=extra)
            return ExecutionResult.failure(
                TIMEOUT_MESSAGE,
                method=method,
                duration_ms=self._elapsed(started),
                timeout_ms=timeout_ms,
            )

        code = proc.returncode
        output = _decode(stdout)
        duration = self._elapsed(started)

        if code == 0:
            log_ok("[%s] Command finished with code 0", request_id, extra=extra)
            return ExecutionResult(
                success=True,
                output=output,
                exit_code=code,
                method=method,
                duration_ms=duration,
                message="Command executed successfully",
            )

        log_fail("[%s] Command finished with code %s", request_id, code, extra=extra)
        return ExecutionResult(
            success=False,
            output=output,
            error=_decode(stderr).strip() or f"Command exited with code {code}",
            exit_code=code,
            method=method,
            duration_ms=duration,
        )

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
