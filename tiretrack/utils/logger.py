# tiretrack/utils/logger.py
"""
Centralised logging configuration for the entire application.
Logs to console and to a rotating file in /logs/.

LOG_LEVEL_OVERRIDES raises or lowers single loggers without touching the
rest, e.g. "tiretrack.services.import_service=DEBUG,httpx=WARNING" to trace
a spreadsheet import row by row.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from tiretrack.config import settings

LOG_LEVEL = settings.LOG_LEVEL.upper()
LOG_DIR = settings.LOG_DIR or os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")
os.makedirs(LOG_DIR, exist_ok=True)

_configured = False


def parse_level_overrides(raw: str) -> dict:
    """Parse "name=LEVEL,name=LEVEL" into {name: LEVEL}. Unknown level names raise ValueError."""
    overrides = {}
    for item in (raw or "").split(","):
        if not item.strip():
            continue
        name, sep, level = item.partition("=")
        name, level = name.strip(), level.strip().upper()
        if not sep or not name or not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Invalid log level override: '{item.strip()}'")
        overrides[name] = level
    return overrides


def apply_level_overrides(overrides: dict):
    for name, level in overrides.items():
        logging.getLogger(name).setLevel(level)


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Handlers stay unfiltered so a per-logger override below the root level still reaches them
    console = logging.StreamHandler()
    console.setFormatter(fmt)

    # Rotating file handler: keeps last 10 × 5MB tiretrack.log files
    file_handler = RotatingFileHandler(
        filename=os.path.join(LOG_DIR, "tiretrack.log"),
        maxBytes=5 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(LOG_LEVEL)
    root.addHandler(console)
    root.addHandler(file_handler)

    apply_level_overrides(parse_level_overrides(settings.LOG_LEVEL_OVERRIDES))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
