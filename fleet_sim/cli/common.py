from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional


LOG_LEVELS: dict[str, int] = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


def _bounded_number(value: str, typ: type, name: str, minimum: float, inclusive: bool):
    """Generic lower-bounded number validator for argparse."""
    try:
        parsed = typ(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Value must be a {name}") from exc
    if parsed < minimum or (not inclusive and parsed == minimum):
        raise argparse.ArgumentTypeError(
            "Value must be positive" if not inclusive else "Value must not be negative"
        )
    return parsed


def positive_int(value: str) -> int:
    return _bounded_number(value, int, "integer", 0, inclusive=False)


def non_negative_int(value: str) -> int:
    return _bounded_number(value, int, "integer", 0, inclusive=True)


def add_logging_arguments(
    parser: argparse.ArgumentParser,
    *,
    default_log_level: str = "info",
    default_log_file: Optional[Path] = None,
    default_console_output: bool = True,
) -> None:
    parser.add_argument(
        "--log-level",
        choices=sorted(LOG_LEVELS.keys()),
        default=default_log_level,
        help="Logging verbosity",
    )

    parser.add_argument(
        "--log-file",
        type=Path,
        default=default_log_file,
        help="Path of the rotating log file",
    )

    console_group = parser.add_mutually_exclusive_group()
    console_group.add_argument(
        "--console",
        dest="console_output",
        action="store_true",
        default=default_console_output,
        help="Also log to console (in addition to file)",
    )
    console_group.add_argument(
        "--no-console",
        dest="console_output",
        action="store_false",
        help="Log to file only (no console output)",
    )


def install_exception_handlers(
    logger: Any,
    loop: Optional[asyncio.AbstractEventLoop] = None
) -> None:
    def handle_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = handle_exception

    if loop is not None:
        def handle_asyncio_exception(loop, context):
            exception = context.get('exception')
            message = context.get('message', 'Unhandled asyncio exception')
            if exception:
                logger.error("Asyncio exception: %s", message, exc_info=exception)
            else:
                logger.error("Asyncio error: %s, context: %s", message, context)

        loop.set_exception_handler(handle_asyncio_exception)


def install_signal_handlers(supervisor: Any, loop: asyncio.AbstractEventLoop) -> None:
    """Route SIGINT/SIGTERM to ``supervisor.shutdown`` synchronously."""

    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, supervisor.shutdown, sig.name)


def remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, ValueError):
            loop.remove_signal_handler(sig)


def log_startup(
    logger: Any,
    title: str,
    **extra_info
) -> None:
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)

    for key, value in extra_info.items():
        display_key = key.replace('_', ' ').title()
        logger.info("%s: %s", display_key, value)

    logger.info("=" * 60)
