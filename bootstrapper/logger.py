# logger.py
"""Logging setup and the telemetry hook for unexpected failures."""

import sys
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from loguru import logger

from .system import app_data_dir

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message} | {extra}"


def setup_logging(
    log_name: str = "",
    debug: bool = False,
    quiet: bool = False,
    log_dir: Optional[Path] = None,
) -> Optional[Path]:
    """
    Configure loguru sinks for a run.

    Args:
        log_name: File name of the persistent log; empty disables the file sink.
        debug: Verbose console output at DEBUG level.
        quiet: No console output at all.
        log_dir: Directory of the log file, the per-user data directory by default.

    Returns:
        Path of the log file, or None when file logging is disabled.
    """
    logger.remove()

    if not quiet:
        logger.add(
            sys.stderr,
            level="DEBUG" if debug else "WARNING",
            format=CONSOLE_FORMAT,
            colorize=True,
        )

    if not log_name:
        return None

    log_file = (log_dir or app_data_dir()) / log_name
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        level="DEBUG",
        format=FILE_FORMAT,
        rotation="1 day",
        retention="1 week",
        encoding="utf-8",
    )
    logger.debug(f"Logging to {log_file}")
    return log_file


@runtime_checkable
class TelemetryCollector(Protocol):
    """Receives unexpected failures of a run."""

    def capture_exception(self, exc: BaseException, **context: Any) -> None: ...


class LoggingTelemetry:
    """Telemetry collector that records events in the log."""

    def capture_exception(self, exc: BaseException, **context: Any) -> None:
        logger.bind(telemetry=True, **context).opt(exception=exc).error(
            f"Unexpected failure reported: {type(exc).__name__}: {exc}"
        )
