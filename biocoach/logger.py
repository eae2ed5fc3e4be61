"""Logging setup for the biocoach command line."""

import sys
from pathlib import Path

from loguru import logger

# stdout carries the JSON payloads, so log lines go to stderr.
CONSOLE_FORMAT = "<level>[biocoach] {level}</level> {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message}"


def setup_logger(level: str = "WARNING", log_file: str | None = None) -> None:
    """Replace loguru's default sink with a terse stderr sink.

    ``log_file`` adds a second, timestamped sink at the same level. Runs
    append to it.
    """
    level = level.upper()
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=sys.stderr.isatty())

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_path, format=FILE_FORMAT, level=level, mode="a", encoding="utf-8")

    logger.debug(f"Logging at {level}")
