"""
Retry decorators for handling transient failures.
"""
from typing import Type, Tuple, Union

import psycopg2
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    RetryCallState,
)

from ..core.logging import get_logger

logger = get_logger(__name__)


def _log_retry(retry_state: RetryCallState):
    """Log each failed attempt before tenacity sleeps."""
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed for {retry_state.fn.__name__}",
        error=str(exc),
        sleep=round(retry_state.next_action.sleep, 2) if retry_state.next_action else None,
    )


def with_retry(
    attempts: int = 3,
    delay: float = 1.0,
    max_delay: float = 10.0,
    exceptions: Union[Type[BaseException], Tuple[Type[BaseException], ...]] = Exception,
):
    """
    Decorator for retrying functions on failure with exponential backoff.

    Args:
        attempts: Total number of attempts, including the first call
        delay: Initial delay in seconds
        max_delay: Upper bound for a single wait
        exceptions: Exception types to catch and retry

    Returns:
        Decorated function; the last exception is re-raised once attempts run out
    """
    return retry(
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=delay, max=max_delay),
        retry=retry_if_exception_type(exceptions),
        before_sleep=_log_retry,
        reraise=True,
    )


def db_retry(attempts: int = 3):
    """Retry policy for establishing database connections."""
    return with_retry(attempts=attempts, delay=0.5, exceptions=psycopg2.OperationalError)
