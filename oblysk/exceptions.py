"""
Custom exceptions for Oblysk.

The dispatch layer never lets these escape to the caller of a dispatch
request: they are raised inside components and converted into failed
``ExecutionResult`` objects at the boundary.
"""


class OblyskError(Exception):
    """Base exception for all Oblysk errors."""
    pass


class ToolUnavailableError(OblyskError):
    """Raised when no suitable external tool exists for an operation.

    Attributes:
        hint: Human-readable remediation (which package to install).
    """

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        base = super().__str__()
        return f"{base}. {self.hint}" if self.hint else base


class ClipboardError(OblyskError):
    """Raised when reading or writing the system clipboard fails."""
    pass


class ChannelNotAllowedError(OblyskError):
    """Raised when an IPC channel outside the whitelist is used."""
    pass
