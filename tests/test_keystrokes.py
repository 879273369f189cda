"""Tests for KeystrokeSimulator batching and pacing."""

from __future__ import annotations

import asyncio

import pytest

from oblysk.input.backends import MacOSBackend, WindowsBackend, X11Backend
from oblysk.input.keystrokes import (
    KeystrokeSimulator,
    compute_batch_size,
    inter_batch_pause_ms,
)
from oblysk.platform.executor import ExecutionResult
from oblysk.platform.profile import DisplayServer, OSFamily
from tests.conftest import FakeExecutor, SleepRecorder, make_profile


def _sendwait_literal(call) -> str:
    script = call.args[-1]
    start = script.index("SendWait('") + len("SendWait('")
    return script[start:script.rindex("')")]


class TestBatchSize:

    @pytest.mark.parametrize("delay, expected", [
        (1, 20),
        (10, 20),
        (50, 4),
        (200, 1),
        (1000, 1),
        (0, 20),
        (-5, 20),
    ])
    def test_formula(self, delay, expected):
        assert compute_batch_size(delay) == expected

    def test_respects_max_batch(self):
        assert compute_batch_size(1, max_batch=8) == 8

    def test_pause(self):
        assert inter_batch_pause_ms(50, 4) == 200
        assert inter_batch_pause_ms(10, 20) == 50
        assert inter_batch_pause_ms(0, 20) == 0


class TestWindowsBatching:

    def _simulator(self, windows_profile, executor=None):
        executor = executor or FakeExecutor()
        sim = KeystrokeSimulator(WindowsBackend(windows_profile), executor)
        sim._sleep = SleepRecorder()
        return sim, executor

    def test_braces_split_into_escaped_batches(self, windows_profile):
        sim, executor = self._simulator(windows_profile)
        result = asyncio.run(sim.simulate("a{b}c", 50, "req"))

        assert result.success
        assert result.message == "Keystrokes completed"
        literals = [_sendwait_literal(c) for c in executor.calls]
        assert literals == ["a{{b}}", "c"]
        assert "".join(literals) == "a{{b}}c"
        assert all(c.program == "powershell" and c.timeout_ms == 5000 for c in executor.calls)

    def test_warmup_then_pause_between_batches_only(self, windows_profile):
        sim, _ = self._simulator(windows_profile)
        asyncio.run(sim.simulate("a{b}c", 50, "req"))
        # warm-up 200ms, one pause of 50 * min(4, 5) ms, none after the last batch
        assert sim._sleep.durations == [0.2, 0.2]

    def test_batches_cover_text_in_order(self, windows_profile):
        text = "abcdefghij" * 5
        sim, executor = self._simulator(windows_profile)
        asyncio.run(sim.simulate(text, 10, "req"))
        assert [_sendwait_literal(c) for c in executor.calls] == [text[:20], text[20:40], text[40:]]

    def test_partial_failure_keeps_going(self, windows_profile):
        executor = FakeExecutor([
            ExecutionResult(success=True),
            ExecutionResult.failure("boom"),
            ExecutionResult(success=True),
        ])
        sim, _ = self._simulator(windows_profile, executor)
        result = asyncio.run(sim.simulate("x" * 50, 10, "req"))

        assert len(executor.calls) == 3
        assert result.success is False
        assert result.errors == ["Position 20: boom"]
        assert result.message == "Completed with 1 errors"

    def test_batches_never_overlap(self, windows_profile):
        in_flight = []
        peak = []

        class SlowExecutor(FakeExecutor):
            async def execute(self, *args, **kwargs):
                in_flight.append(1)
                peak.append(len(in_flight))
                await asyncio.sleep(0)
                in_flight.pop()
                return await super().execute(*args, **kwargs)

        sim, _ = self._simulator(windows_profile, SlowExecutor())
        asyncio.run(sim.simulate("y" * 45, 10, "req"))
        assert max(peak) == 1

    def test_empty_text(self, windows_profile):
        sim, executor = self._simulator(windows_profile)
        result = asyncio.run(sim.simulate("", 10, "req"))
        assert result.success
        assert executor.calls == []


class TestSingleInvocation:

    def test_x11_types_whole_string(self, x11_profile, fake_executor):
        sim = KeystrokeSimulator(X11Backend(x11_profile), fake_executor)
        result = asyncio.run(sim.simulate("hello world", 10, "req"))

        assert result.success
        assert result.method == "xdotool"
        (call,) = fake_executor.calls
        assert call.program == "xdotool"
        assert call.args == ("type", "--delay", "10", "--", "hello world")
        assert call.timeout_ms == 30000

    def test_missing_tool_is_failure_not_exception(self, fake_executor):
        profile = make_profile(OSFamily.LINUX, DisplayServer.X11, ())
        sim = KeystrokeSimulator(X11Backend(profile), fake_executor)
        result = asyncio.run(sim.simulate("hello", 10, "req"))

        assert result.success is False
        assert result.method == "none"
        assert "No key simulation tool found" in result.error
        assert "xdotool" in result.error
        assert fake_executor.calls == []


class _RecordingDispatcher:
    def __init__(self):
        self.texts = []

    async def paste_via_clipboard(self, text, request_id):
        self.texts.append(text)
        return ExecutionResult(success=True, method="clipboard")


class TestMacOSRedirect:

    def test_long_text_goes_through_clipboard(self, macos_profile, fake_executor):
        dispatcher = _RecordingDispatcher()
        sim = KeystrokeSimulator(MacOSBackend(macos_profile), fake_executor, dispatcher)
        result = asyncio.run(sim.simulate("z" * 200, 10, "req"))

        assert result.method == "clipboard"
        assert dispatcher.texts == ["z" * 200]
        assert fake_executor.calls == []

    def test_short_text_uses_osascript(self, macos_profile, fake_executor):
        dispatcher = _RecordingDispatcher()
        sim = KeystrokeSimulator(MacOSBackend(macos_profile), fake_executor, dispatcher)
        asyncio.run(sim.simulate("z" * 199, 10, "req"))

        assert dispatcher.texts == []
        (call,) = fake_executor.calls
        assert call.program == "osascript"
