"""Logging utilities for the weather server."""

import logging
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler


def get_logger(name: str) -> logging.Logger:
    """Get a logger nested under the mcp_weather namespace.

    Args:
        name: the name of the logger, usually the module's ``__name__``

    Returns:
        a configured logger instance
    """
    return logging.getLogger(name)


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
) -> None:
    """Configure logging for the server.

    Args:
        level: the log level to use
    """
    handlers: list[logging.Handler] = [RichHandler(console=Console(stderr=True), rich_tracebacks=True)]

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
    )
