"""Logging configuration using loguru.

- Console sink always on, level from settings
- `logs/app.log` rotates at 50 MB and keeps 30 days
- Errors also go to `logs/errors.log` for quick debugging
- File sinks can be turned off with ENABLE_FILE_LOGGING=false (tests, CLI use)
"""

import sys
from pathlib import Path

from loguru import logger

from src.config import settings


def setup_logger():
    """Configure the loguru logger for the onboarding service.

    Log Files:
    - logs/app.log: Main application log (rotates at 50MB, keeps 30 days)
    - logs/errors.log: Error-only log (rotates at 10MB, keeps 90 days)
    - Console: Colored output for development
    """
    # Remove default handler
    logger.remove()

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )

    logger.add(
        sys.stdout,
        format=log_format,
        level=settings.log_level,
        colorize=True,
    )

    if not settings.enable_file_logging:
        return logger

    Path("logs").mkdir(exist_ok=True)

    logger.add(
        "logs/app.log",
        format=log_format,
        level="INFO",
        rotation="50 MB",
        retention="30 days",
        compression="zip",
        enqueue=True,
        backtrace=True,
        diagnose=True,
    )

    logger.add(
        "logs/errors.log",
        format=log_format,
        level="ERROR",
        rotation="10 MB",
        retention="90 days",
        compression="zip",
        enqueue=True,
        backtrace=True,
        diagnose=True,
    )

    return logger


# Initialize logger
log = setup_logger()
