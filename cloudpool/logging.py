"""Logging configuration for cloudpool.

The library never prints on its own. Applications (or the pool updater's
host process) opt in with a LogConfig.

Example:
    from cloudpool.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="cloudpool.log"))
    try:
        updater.start()
        ...
    finally:
        teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal

from cloudpool.observability.logger import logger

__all__ = ["LogConfig", "LogLevel", "setup_logging", "teardown_logging"]

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum console log level.
        file: Path to log file. If provided, logs are written to this file.
        console: Whether to log to stderr. Defaults to True.
        rotation: Size at which the log file rotates (e.g. "50 MB", "512 KB").
        retention: Number of rotated log files to keep. Defaults to 10.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def setup_logging(config: LogConfig) -> list[int]:
    """Configure logging and return handler IDs for cleanup.

    Args:
        config: Logging configuration.

    Returns:
        List of handler IDs that were added (for later removal).
    """
    logger.enable("cloudpool")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(logger.add(sys.stderr, level=config.level))

    if config.file:
        # file always captures everything
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                rotation=config.rotation,
                retention=config.retention,
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable logging."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("cloudpool")
