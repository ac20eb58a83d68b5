"""Loguru initialisation for applications embedding flowrag."""

import os
import sys
from datetime import datetime

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {file}:{line} | {message}"


def init_logger(log_dir: str = "logs", level: str = "INFO", enable_file: bool = True):
    """Configure the global loguru logger.

    Removes loguru's default sink, then installs a colourised stdout sink and,
    unless disabled, a file sink named after the current timestamp. Files
    rotate at midnight, are kept for 7 days and compressed as zip.

    Args:
        log_dir: Directory for log files.
        level: Minimum level for both sinks.
        enable_file: Whether to add the file sink.
    """
    from loguru import logger

    logger.remove()

    if enable_file:
        os.makedirs(log_dir, exist_ok=True)
        log_filepath = os.path.join(log_dir, f"{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.log")
        logger.add(
            log_filepath,
            level=level,
            rotation="00:00",
            retention="7 days",
            compression="zip",
            encoding="utf-8",
            format=LOG_FORMAT,
        )

    logger.add(sink=sys.stdout, level=level, format=LOG_FORMAT, colorize=True)
