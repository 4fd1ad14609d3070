"""Logging setup for licsync.

Console handler on stderr plus an optional file handler. Calling
`setup_logging` again replaces the root handlers instead of stacking them.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

DEF_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DEF_FILE_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "[%(filename)s:%(lineno)d %(funcName)s] - %(message)s"
)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LICSYNC_LOG_LEVEL") or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(level: Optional[str] = None, *, log_file: Optional[str] = None) -> None:
    """Configure the root logger.

    Args:
        level: Console level name; falls back to LICSYNC_LOG_LEVEL, then INFO.
        log_file: When given, a DEBUG-level file handler is attached as well.
    """
    logging.captureWarnings(True)
    console_level = _resolve_level(level)

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(DEF_CONSOLE_FORMAT))
    root.addHandler(console_handler)

    root_level = console_level
    if log_file:
        p = Path(log_file)
        p.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(p, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(DEF_FILE_FORMAT))
        root.addHandler(file_handler)
        root_level = logging.DEBUG

    root.setLevel(root_level)
    # urllib3 is chatty at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a child logger with the given name."""
    return logging.getLogger(name or "licsync")
