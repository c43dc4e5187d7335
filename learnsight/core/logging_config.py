"""Loguru sink configuration driven by Settings."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from config import Settings, get_settings


def configure_logging(settings: Settings | None = None, console_level: str | None = None) -> None:
    """
    Install the console sink and, when configured, a rotating file sink.

    Args:
        settings: Settings to read log level and file from (defaults to cached settings)
        console_level: Override for the stderr sink level
    """
    settings = settings or get_settings()

    logger.remove()
    logger.add(
        sys.stderr,
        level=console_level or settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level=settings.log_level,
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )
