#!/usr/bin/env python3
"""
Oblysk CLI entry point with enhanced logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import logging.handlers
import os
import signal
import sys
import traceback
from pathlib import Path

from __version__ import __version__

import oblysk.log  # registers TRACE / SUCCESS levels

# Global logger instance
logger = None


def setup_logging(debug: bool = False, log_file: str | None = None) -> logging.Logger:
    """Setup logging to both console and file

    Args:
        debug: Enable debug level logging
        log_file: Path to log file (default: ~/.oblysk.log)
    """
    global logger

    if logger is not None:
        return logger

    logger = logging.getLogger('oblysk')
    logger.setLevel(logging.DEBUG)

    if log_file is None:
        log_file = os.path.expanduser('~/.oblysk.log')

    fmt = logging.Formatter(
        '[%(asctime)s] %(levelname)-8s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # File handler (rotate log file when it gets too large)
    try:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10 MB
            backupCount=5,
            encoding='utf-8',
        )
        file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)
    except OSError as e:
        print(f"Warning: Could not setup file logging: {e}", file=sys.stderr)

    # Console handler (only warnings in production, all in debug)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    console_handler.setFormatter(fmt)
    logger.addHandler(console_handler)

    return logger


class ConsoleWindow:
    """Stand-in window collaborator for ``oblysk run``: prints UI events."""

    def __init__(self, event_bus, stream=None, show_logs: bool = False):
        self.stream = stream or sys.stdout
        self.show_logs = show_logs
        event_bus.subscribe_all(self._on_event)

    def _on_event(self, event) -> None:
        from oblysk.core.events import EventType

        if event.type is EventType.MAIN_PROCESS_LOG and not self.show_logs:
            return
        payload = json.dumps(event.data, ensure_ascii=False, default=str)
        print(f"{event.type.channel} {payload}", file=self.stream, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='oblysk',
        description='Oblysk - deliver text into the focused application',
    )
    parser.add_argument('--debug', action='store_true', help='Enable debug mode with verbose logging')
    parser.add_argument('--config', type=str, default=None, help='Path to config file')
    parser.add_argument('--logfile', type=str, default=None, help='Path to log file (default: ~/.oblysk.log)')
    parser.add_argument('--version', action='version', version='%(prog)s ' + __version__)

    sub = parser.add_subparsers(dest='command')
    sub.add_parser('probe', help='Show the detected platform and tools')

    p_type = sub.add_parser('type', help='Type TEXT as keystrokes')
    p_type.add_argument('text')
    p_type.add_argument('--delay', type=int, default=None, help='Delay between keystrokes in ms')

    p_paste = sub.add_parser('paste', help='Paste TEXT through the clipboard')
    p_paste.add_argument('text')

    p_shell = sub.add_parser('shell-paste', help='Paste TEXT with the platform shell paste')
    p_shell.add_argument('text')

    sub.add_parser('clipboard', help='Print the current clipboard text')
    sub.add_parser('hotkeys', help='Register hotkeys and report the result')

    p_run = sub.add_parser('run', help='Monitor clipboard and hotkeys until interrupted')
    p_run.add_argument('--show-logs', action='store_true', help='Also print main-process-log events')
    return parser


async def _run_command(args, app) -> int:
    if args.command == 'probe':
        app._init_platform()
        print(json.dumps(app.profile.to_dict(), indent=2))
        return 0

    if args.command == 'run':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, app.request_quit)
            except (NotImplementedError, RuntimeError):
                pass  # Windows event loops lack add_signal_handler
        window = ConsoleWindow(app.event_bus, show_logs=args.show_logs)
        await app.run(window)
        return 0

    await app.start()
    try:
        if args.command == 'type':
            result = await app.simulate_keystrokes(args.text, args.delay)
        elif args.command == 'paste':
            result = await app.paste_via_clipboard(args.text)
        elif args.command == 'shell-paste':
            result = await app.paste_via_shell(args.text)
        elif args.command == 'clipboard':
            result = await app.get_clipboard_content()
        else:
            result = app.test_hotkeys()
    finally:
        app.shutdown()

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0 if result.get('success') else 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point for Oblysk"""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 2

    log = setup_logging(debug=args.debug, log_file=args.logfile)
    log.info(f"Oblysk {__version__} starting: {args.command} (PID {os.getpid()})")

    # Import after args parsing to avoid import-time side effects
    from oblysk.app import OblyskApp

    try:
        app = OblyskApp(debug=args.debug, config_path=args.config)
        if args.command != 'hotkeys':
            app.config.set('hotkeys_enabled', args.command == 'run' and app.config.get('hotkeys_enabled'))
        return asyncio.run(_run_command(args, app))

    except KeyboardInterrupt:
        log.info("Oblysk terminated by user (Ctrl+C)")
        return 0

    except OSError as e:
        log.error(f"OS error: {e}")
        log.debug(traceback.format_exc())
        return 1

    except Exception as e:
        log.error(f"Unhandled error: {type(e).__name__}: {e}")
        log.debug(traceback.format_exc())
        return 1

    finally:
        log.info("Oblysk shutdown")


if __name__ == '__main__':
    sys.exit(main())
