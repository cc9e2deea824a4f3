"""Retry logic for outbound HTTP calls with Tenacity."""

import logging

import httpx
from tenacity import (
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.utils.logger import log


def retry_on_network_error(max_attempts: int = 3, min_wait: float = 1, max_wait: float = 10):
    """Retry decorator for network/connection errors.

    Use for: GitHub REST calls. HTTP status errors are not retried; only
    connection failures and timeouts are.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum backoff in seconds
        max_wait: Maximum backoff in seconds
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(
            (
                httpx.ConnectError,
                httpx.TimeoutException,
                httpx.RemoteProtocolError,
                ConnectionError,
                TimeoutError,
            )
        ),
        before_sleep=before_sleep_log(log, logging.WARNING),
        after=after_log(log, logging.INFO),
        reraise=True,
    )
