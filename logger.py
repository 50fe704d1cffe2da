#!/usr/bin/env python3
"""
Logging for the classroom noise monitor.

Console output is colour-coded by level on a terminal; the `logging` section
of config.json can add a log file. Monitoring events (accepted warnings,
escalation, recording start and stop, saved recordings) go through
`log_event` as one "<event> key=value ..." line each, so a day of monitoring
can be grepped from the log file.

Usage:
    from logger import get_logger, log_event
    log = get_logger(__name__)
    log_event(log, "recording_started", warnings=3, video=False)
"""
import logging
import sys
from pathlib import Path
from typing import Any, Optional

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_COLORS = {
    'DEBUG': '\033[36m',      # Cyan
    'INFO': '\033[32m',       # Green
    'WARNING': '\033[33m',    # Yellow
    'ERROR': '\033[31m',      # Red
    'CRITICAL': '\033[35m',   # Magenta
}
RESET = '\033[0m'


class ColoredFormatter(logging.Formatter):
    """Colours the level name when writing to a terminal."""

    def __init__(self, use_color: Optional[bool] = None):
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)
        self.use_color = sys.stdout.isatty() if use_color is None else use_color

    def format(self, record):
        if not self.use_color:
            return super().format(record)
        # The record is shared with the file handler
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{LEVEL_COLORS.get(record.levelname, '')}{record.levelname}{RESET}"
        return super().format(record)


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.2f}"
    text = str(value)
    return f'"{text}"' if " " in text else text


def format_event(event: str, **fields: Any) -> str:
    """
    Format a monitoring event as "<event> key=value ...".

    Example: format_event("warning", loudness=85, count=2) -> "warning loudness=85 count=2"
    """
    return " ".join([event] + [f"{key}={_format_value(value)}" for key, value in fields.items()])


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: Any) -> None:
    """Log a monitoring event line at the given level."""
    logger.log(level, format_event(event, **fields))


def setup_logging_from_config(config: dict, debug: bool = False) -> logging.Logger:
    """
    Configure the root logger from the `logging` section of the configuration.

    Args:
        config: Configuration dictionary (log_file, level)
        debug: If True, log at DEBUG level regardless of the configured level

    Returns:
        Root logger
    """
    section = config.get("logging", {})
    level = "DEBUG" if debug else section.get("level", "INFO")
    log_level = getattr(logging, str(level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)

    log_file = section.get("log_file")
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (pass __name__)."""
    return logging.getLogger(name)
