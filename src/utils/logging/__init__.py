"""
Logging configuration for pgslice.

Log records go to stderr so that stdout carries only the command output
(batch progress lines and date ranges). JSON output and a rotating log file
are available for unattended runs.

Usage:
    from utils.logging import setup_logging, get_logger

    setup_logging(level="INFO", json_format=True)

    logger = get_logger(__name__)
    logger.info("Batch complete", extra={"table": "public.posts", "rows": 10000})
"""

from .config import configure_from_env, get_logger, setup_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_from_env",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
