"""
Logger wrapper carrying run-scoped context.
"""

import logging
from typing import Any


class ContextLogger:
    """
    Logger wrapper that attaches fixed context to every message

    Usage:
        log = ContextLogger(__name__, run_id="a1b2")
        source_log = log.bind(side="source")
        source_log.info("Batch staged", batch=3, records=50000)
        # extra={"run_id": "a1b2", "side": "source", "batch": 3, "records": 50000}
    """

    def __init__(self, name: str, **context):
        self.logger = logging.getLogger(name)
        self.context = context

    def bind(self, **context) -> "ContextLogger":
        """Return a new logger with additional context (this one is unchanged)."""
        child = ContextLogger(self.logger.name, **self.context)
        child.context.update(context)
        return child

    def _log(self, level: int, msg: str, *args, exc_info=None, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={**self.context, **kwargs},
            stacklevel=3,
        )

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, exc_info=None, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def get_context(self) -> dict[str, Any]:
        return self.context.copy()
