"""This module contains decorators for the folioils package."""

import logging
import os
from typing import Callable

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
    after_log,
)

logger = logging.getLogger(__name__)


def should_retry_transport_error(exception: BaseException) -> bool:
    """Check if exception is a network-level failure worth another attempt.

    Only failures without an HTTP response qualify; status codes are never retried
    at the transport level.
    """
    return isinstance(
        exception,
        (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError),
    )


class TransportErrorRetryCondition:
    """Custom retry condition for transport errors."""

    def __call__(self, retry_state):
        """Check if we should retry based on the raised exception."""
        if not retry_state.outcome.failed:
            return False
        exception = retry_state.outcome.exception()
        return should_retry_transport_error(exception)


def get_transport_retry_config() -> dict:
    """Get transport retry configuration from environment."""
    max_wait_env = os.environ.get("FOLIOILS_TRANSPORT_MAX_WAIT")
    if max_wait_env is None:
        max_wait = 30.0
    elif max_wait_env.lower() in ("unlimited", "inf", "none"):
        max_wait = float("inf")
    else:
        max_wait = float(max_wait_env)

    # Convert max_retries to attempts (add 1 for initial attempt)
    max_retries = int(os.environ.get("FOLIOILS_MAX_TRANSPORT_RETRIES", "") or "0")
    max_attempts = max_retries + 1

    return {
        "stop": stop_after_attempt(max_attempts),
        "wait": wait_exponential(
            multiplier=float(os.environ.get("FOLIOILS_TRANSPORT_RETRY_DELAY", "") or "1.0"),
            max=max_wait,
            exp_base=float(os.environ.get("FOLIOILS_TRANSPORT_RETRY_FACTOR", "") or "2.0"),
        ),
        "retry": TransportErrorRetryCondition(),
        "before_sleep": before_sleep_log(logger, logging.INFO),
        "after": after_log(logger, logging.DEBUG),
        "reraise": True,
    }


def folio_retry_on_transport_error(func: Callable) -> Callable:
    """
    Retry decorator for network-level failures using tenacity.

    The configuration is read when the decorator is applied.

    Environment Variables:
        FOLIOILS_MAX_TRANSPORT_RETRIES: Max retries (default: 0 - no retries)
        FOLIOILS_TRANSPORT_RETRY_DELAY: Initial delay (default: 1.0)
        FOLIOILS_TRANSPORT_MAX_WAIT: Max wait time (default: 30.0)
            - Set to a number (e.g., "60") for a cap in seconds
            - Set to "unlimited", "inf", or "none" for no cap
        FOLIOILS_TRANSPORT_RETRY_FACTOR: Backoff factor (default: 2.0)
    """
    return retry(**get_transport_retry_config())(func)
