"""
Structured logging for datarecon

Usage:
    from datarecon.utils.logging import setup_logging, ContextLogger

    setup_logging(level="INFO", json_format=True)

    log = ContextLogger(__name__, run_id=context.run_id)
    log.info("Pass complete", side="source", records=1_000_000)
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
