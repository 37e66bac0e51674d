"""Loguru sink setup."""

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "[{time:YYYY-MM-DD HH:mm:ss}] {level} {name}:{line} {message}"


def setup_logging(level: str = "INFO", log_file: Path | None = None, rotation: str = "10 MB") -> None:
    """
    Replace loguru's default sink with a stderr sink and an optional file sink.

    The file sink rotates by size and writes from a background queue so
    logging never stalls a pacing delay.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            format=FILE_FORMAT,
            rotation=rotation,
            enqueue=True,
            encoding="utf-8",
        )
