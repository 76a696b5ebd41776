"""Logging setup for the CRM authorization service.

Everything under the ``hailcrm`` package logs through ``logging.getLogger(__name__)``;
configuring the ``hailcrm`` logger once at startup routes all of it to the
console and, optionally, a size-rotated file.
"""

import logging
import logging.handlers
import os
from typing import List, Optional

PACKAGE_LOGGER = "hailcrm"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
ISO_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _resolve_level(level: str) -> int:
    name = level.upper()
    if name not in VALID_LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(VALID_LEVELS)}")
    return getattr(logging, name)


def _build_handlers(
    name: str,
    log_dir: str,
    file_logging: bool,
    console_logging: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    if console_logging:
        handlers.append(logging.StreamHandler())

    if file_logging:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, f"{name}.log"),
            maxBytes=max_bytes,
            backupCount=backup_count,
        ))

    return handlers


def setup_logger(
    name: str = PACKAGE_LOGGER,
    log_dir: str = "./logs",
    level: str = "INFO",
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    file_logging: bool = False,
    console_logging: bool = True,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Attach console and/or rotating file handlers to logger ``name``.

    Calling it again only updates the level; handlers are attached once, so
    repeated app factories do not duplicate output.

    Raises:
        ValueError: ``level`` is not a standard level name
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if logger.handlers:
        return logger

    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=date_format or ISO_DATE_FORMAT)
    for handler in _build_handlers(name, log_dir, file_logging, console_logging, max_bytes, backup_count):
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def configure_from_settings(settings) -> logging.Logger:
    """Configure the package logger from :class:`~hailcrm.core.config.Settings`."""
    return setup_logger(
        PACKAGE_LOGGER,
        log_dir=settings.log_dir,
        level=settings.log_level,
        log_format=settings.log_format,
        file_logging=settings.log_to_file,
    )
