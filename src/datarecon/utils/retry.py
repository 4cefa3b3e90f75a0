"""
Retry with exponential backoff for record-store reads

Only whole, idempotent operations are retried (a page read at a fixed offset,
a Vault lookup). Nothing here retries part of a batch.

Usage:
    from datarecon.utils.retry import retry_database_operation

    read_page = retry_database_operation(max_retries=2)(source.page_query)
    records = read_page(excluded, offset, limit)
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# Substrings of exception messages/type names that indicate a transient failure
RETRYABLE_PATTERNS = (
    "connection",
    "timeout",
    "timed out",
    "deadlock",
    "lock wait timeout",
    "server has gone away",
    "broken pipe",
    "network error",
    "communication link failure",
    "temporarily unavailable",
)

RETRYABLE_EXCEPTION_NAMES = frozenset({
    "connectionerror",
    "timeouterror",
    "operationalerror",
    "interfaceerror",
})


def is_retryable_db_exception(exception: Exception) -> bool:
    """
    Decide whether a database exception looks transient

    Connection drops, timeouts and deadlocks are retryable; syntax errors,
    missing tables and constraint violations are not.
    """
    exception_type = type(exception).__name__.lower()
    if exception_type in RETRYABLE_EXCEPTION_NAMES:
        return True

    message = str(exception).lower()
    return any(
        pattern in message or pattern in exception_type
        for pattern in RETRYABLE_PATTERNS
    )


def _backoff_delay(attempt: int, base_delay: float, max_delay: float, jitter: bool) -> float:
    delay = min(base_delay * (2.0 ** attempt), max_delay)
    if jitter:
        # +/-25%
        delay += random.uniform(-delay * 0.25, delay * 0.25)
    return max(0.0, delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter: bool = True,
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Retries after the first attempt (0 disables retrying)
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound on any single delay
        jitter: Randomize each delay by +/-25%
        retry_if: Predicate selecting retryable exceptions (default: all)
        on_retry: Callback(attempt, exception, delay) before each sleep
    """
    def decorator(func: Callable) -> Callable:
        func_name = getattr(func, "__qualname__", getattr(func, "__name__", "function"))

        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if retry_if is not None and not retry_if(e):
                        logger.debug(
                            f"Non-retryable error in {func_name}: {type(e).__name__}: {e}"
                        )
                        raise
                    if attempt >= max_retries:
                        if max_retries:
                            logger.error(
                                f"Max retries ({max_retries}) exceeded for {func_name}: "
                                f"{type(e).__name__}: {e}"
                            )
                        raise

                    delay = _backoff_delay(attempt, base_delay, max_delay, jitter)
                    attempt += 1
                    logger.warning(
                        f"Attempt {attempt}/{max_retries} failed for {func_name}: "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )
                    if on_retry:
                        try:
                            on_retry(attempt, e, delay)
                        except Exception as callback_error:
                            logger.warning(f"on_retry callback failed: {callback_error}")
                    time.sleep(delay)

        return wrapper
    return decorator


def retry_database_operation(
    max_retries: int = 3,
    base_delay: float = 1.0,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """retry_with_backoff restricted to transient database errors."""
    return retry_with_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        retry_if=is_retryable_db_exception,
        on_retry=on_retry,
    )
