"""
Logging configuration for Registry Match.

Console and file handlers share one format. The level comes from
LOG_LEVEL; DEBUG=true forces debug output on both.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

from config.settings import settings

LOG_DIR = Path(__file__).parent.parent / "logs"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Union[str, int, None] = None) -> int:
    """Turn a level name ("info", "WARNING") or number into a logging level."""
    if level is None or level == "":
        level = settings.LOG_LEVEL
    if isinstance(level, int):
        return level

    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def setup_logging(
    name: str = "registry_match",
    level: Union[str, int, None] = None,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        name: Logger name
        level: Level name or number; defaults to settings.LOG_LEVEL
        log_dir: Directory for the "<name>.log" file; defaults to logs/

    Returns:
        Configured logger instance
    """
    resolved = logging.DEBUG if settings.DEBUG else resolve_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(resolved)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    log_dir = Path(log_dir) if log_dir else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)

    # The file keeps whatever the logger lets through
    file_handler = logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console_handler.setFormatter(formatter)
    file_handler.setFormatter(formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    return logger


# Default logger
logger = setup_logging()
