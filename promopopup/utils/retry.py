# ==============================================================================
# Retry Configuration
# ==============================================================================
"""
Shared retry configuration for network resilience.

Provides reusable retry decorators with exponential backoff for handling
transient failures when reading the event log or fetching popup config.

Light retry: 3 attempts over ~7 seconds (for reads on a request path)

Event emission is deliberately NOT retried; see promopopup.core.emitter.
"""

import logging
from typing import Tuple, Type

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

# ==============================================================================
# Retry Constants
# ==============================================================================

# Light retry configuration: 3 attempts
# Exponential backoff: 1s, 2s = ~3s of waiting before giving up
RETRY_ATTEMPTS_LIGHT = 3
RETRY_WAIT_MIN = 1  # seconds
RETRY_WAIT_MAX = 4  # seconds (cap for exponential backoff)

# Valkey retry configuration (used by redis-py client)
VALKEY_RETRIES = 3


# ==============================================================================
# Logging Callbacks
# ==============================================================================


def log_retry_attempt_light(logger: logging.Logger):
    """
    Create a callback that logs retry attempts for light retry.

    Args:
        logger: Logger instance to use for logging

    Returns:
        Callback function for tenacity's before_sleep parameter
    """

    def _log_retry(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retry attempt %d/%d after error: %s",
            retry_state.attempt_number,
            RETRY_ATTEMPTS_LIGHT,
            exception,
        )

    return _log_retry


# ==============================================================================
# Retry Decorators
# ==============================================================================


def retry_light(exception_types: Tuple[Type[Exception], ...], logger: logging.Logger):
    """
    Create a light retry decorator (3 attempts).

    Use this for reads whose caller has a graceful fallback.

    Args:
        exception_types: Tuple of exception types to retry on
        logger: Logger instance for retry logging

    Returns:
        Tenacity retry decorator

    Example:
        @retry_light(HTTP_RETRY_EXCEPTIONS, logger)
        def fetch(self, shop):
            ...
    """
    return retry(
        stop=stop_after_attempt(RETRY_ATTEMPTS_LIGHT),
        wait=wait_exponential(multiplier=1, min=RETRY_WAIT_MIN, max=RETRY_WAIT_MAX),
        retry=retry_if_exception_type(exception_types),
        before_sleep=log_retry_attempt_light(logger),
        reraise=True,
    )
