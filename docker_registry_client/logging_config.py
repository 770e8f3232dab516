"""Logging setup for docker-registry-client.

Every module logs through a child of the ``docker_registry_client`` logger.
Nothing is attached to it until the application calls ``configure_logging``;
before that, records follow whatever the application configured for the
root logger.

Environment:
    DRC_DEBUG=1         DEBUG level and a format that includes file:line
    DRC_LOG_LEVEL=NAME  default level when none is passed explicitly
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER_NAME = "docker_registry_client"

DEBUG_MODE = os.getenv("DRC_DEBUG", "0") == "1"
LOG_LEVEL = os.getenv("DRC_LOG_LEVEL", "DEBUG" if DEBUG_MODE else "INFO")

_BASE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s"
LOG_FORMAT = (
    f"{_BASE_FORMAT} %(filename)s:%(lineno)d: %(message)s"
    if DEBUG_MODE
    else f"{_BASE_FORMAT}: %(message)s"
)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def configure_logging(
    log_level: Optional[str] = None,
    include_console: bool = True,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Install handlers on the package logger, replacing any from a previous call.

    Args:
        log_level: Level name; unknown names fall back to INFO
        include_console: Log to stderr
        log_file: Also log to this file, rotated at 10 MB with 5 backups

    Returns:
        The package logger
    """
    level = getattr(logging, (log_level or LOG_LEVEL).upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    logger = get_logger()
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        _attach(
            logger,
            logging.handlers.RotatingFileHandler(
                path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
            ),
            level,
        )

    if include_console:
        _attach(logger, logging.StreamHandler(), level)

    return logger


def configure_module_logging(module_name: str) -> logging.Logger:
    """Logger for one module, e.g. ``configure_module_logging("registry.client")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{module_name}")


def get_logger() -> logging.Logger:
    return logging.getLogger(ROOT_LOGGER_NAME)
