"""Logging configuration for mcp_shim using loguru."""

import os
import sys
from typing import Optional

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(
    log_file: Optional[str] = None,
    log_level: str = "INFO",
    rotation: str = "10 MB",
    retention: str = "7 days",
    compression: str = "zip",
    console_output: bool = True,
) -> None:
    """
    Configure loguru sinks for the shim.

    Library code never calls this; it is invoked by the CLI (or by an
    embedding application that wants the same formatting).

    Args:
        log_file: Optional path of a rotating log file (relative paths are
            resolved against the current working directory)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        rotation: Log rotation size
        retention: How long to keep old logs
        compression: Compression format for old logs
        console_output: Whether to output to stderr
    """
    logger.remove()

    if console_output:
        logger.add(
            sys.stderr,
            level=log_level,
            format=_CONSOLE_FORMAT,
            colorize=True,
        )

    if log_file:
        logger.add(
            os.path.abspath(log_file),
            level=log_level,
            format=_FILE_FORMAT,
            rotation=rotation,
            retention=retention,
            compression=compression,
            encoding="utf-8",
        )


def get_logger(name: Optional[str] = None):
    """
    Get a logger bound to a component name.

    Args:
        name: Optional component name shown in every record

    Returns:
        Logger instance
    """
    if name:
        return logger.bind(name=name)
    return logger
