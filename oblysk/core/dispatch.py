"""Dispatch request / response records."""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, field
from enum import Enum

from oblysk.platform.executor import ExecutionResult

_ID_ALPHABET = string.digits + string.ascii_lowercase


def new_request_id(length: int = 9) -> str:
    """Random base-36 token used only to correlate log lines."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class Operation(Enum):
    KEYSTROKES = "keystrokes"
    CLIPBOARD_PASTE = "clipboard"
    SHELL_PASTE = "shell"


@dataclass(frozen=True)
class DispatchRequest:
    text: str
    operation: Operation
    delay_ms: int = 0
    request_id: str = field(default_factory=new_request_id)


@dataclass(frozen=True)
class DispatchResponse:
    request: DispatchRequest
    result: ExecutionResult
    platform: str
    duration_ms: int | None = None

    @property
    def success(self) -> bool:
        return self.result.success

    def to_dict(self) -> dict:
        data = self.result.to_dict()
        data["requestId"] = self.request.request_id
        data["platform"] = self.platform
        data["operation"] = self.request.operation.value
        if self.duration_ms is not None:
            data["duration"] = self.duration_ms
        return data
