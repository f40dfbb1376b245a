"""Retry helpers with exponential backoff for external calls.

Thin wrappers around tenacity so every service applies the same policy:
only errors that declare themselves transient are retried, the delay grows
exponentially from ``base_delay`` and the last error is re-raised unchanged
once the attempt budget is spent.
"""

import logging
from collections.abc import Callable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


def is_transient(error: BaseException) -> bool:
    """Return True for errors that are expected to succeed on retry."""
    return bool(getattr(error, "retryable", False))


def _retry_condition(retry_on: Callable[[BaseException], bool] | tuple):
    if isinstance(retry_on, tuple):
        return retry_if_exception(lambda e: isinstance(e, retry_on) and is_transient(e))
    return retry_if_exception(retry_on)


def async_retrying(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: Callable[[BaseException], bool] | tuple = is_transient,
    sleep: Callable | None = None,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` controller for per-instance retry policies.

    Usage:
        async for attempt in async_retrying(max_attempts=3):
            with attempt:
                await do_request()
    """
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay),
        retry=_retry_condition(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        **kwargs,
    )
