"""Logging setup for the hot pool alert bot."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import ConfigError

DEFAULT_LOG_PATH = Path("logs/bot.log")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
# Telegram long-polling logs every getUpdates request through these at INFO.
NOISY_LOGGERS = ("httpx", "httpcore")


def parse_level(value: object, default: int = logging.INFO) -> int:
    """Turn a config value such as ``"debug"`` or ``10`` into a logging level."""

    if value is None or value == "":
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    level = logging.getLevelName(str(value).strip().upper())
    if not isinstance(level, int):
        raise ConfigError(f"Unknown logging level {value!r}")
    return level


def setup_logging(log_level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Send records to the console and to a rotating ``log_file``.

    Calling it again once handlers exist only adjusts the level.
    """

    root = logging.getLogger()
    root.setLevel(log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
    if root.handlers:
        return

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    file_path = log_file or DEFAULT_LOG_PATH
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        file_path, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    root.debug("Logging to %s", file_path)


__all__ = ["DEFAULT_LOG_PATH", "parse_level", "setup_logging"]
