"""Custom logging levels for Oblysk.

Levels (ascending):
    TRACE   =  5  — every clipboard poll and its command, raw hotkey events
    DEBUG   = 10  — clipboard writes, backend selection
    INFO    = 20  — dispatch requests, command invocations (default)
    SUCCESS = 25  — completed dispatches and commands

Usage:
    import oblysk.log  # must be imported once before any logger is used
    logger = logging.getLogger(__name__)
    logger.success("paste completed")
"""

import logging

TRACE: int = 5
SUCCESS: int = 25
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(SUCCESS, "SUCCESS")


def _trace(self: logging.Logger, message: object, *args: object, **kwargs: object) -> None:
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)  # type: ignore[attr-defined]


def _success(self: logging.Logger, message: object, *args: object, **kwargs: object) -> None:
    if self.isEnabledFor(SUCCESS):
        self._log(SUCCESS, message, args, **kwargs)  # type: ignore[attr-defined]


# Patch Logger class once at import time
logging.Logger.trace = _trace  # type: ignore[attr-defined]
logging.Logger.success = _success  # type: ignore[attr-defined]


def level_name(levelno: int) -> str:
    """Map a logging level number to a log entry level name."""
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= SUCCESS:
        return "success"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


def level_number(name: str) -> int:
    """Inverse of :func:`level_name`; unknown names map to INFO."""
    return {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "success": SUCCESS,
        "warn": logging.WARNING,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }.get(str(name).lower(), logging.INFO)
