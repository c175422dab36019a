"""
Retry helper for Google API calls using tenacity library.

Provides automatic retry logic with exponential backoff for HTTP requests
to Cloud Monitoring, BigQuery and the metadata server.

Only transport-level failures are retried here. A failed sync run is never
retried from inside the process; the scheduler triggers a fresh run instead.
"""

import logging

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from slo_reporting.core.config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}


def is_retryable_http_error(exception: BaseException) -> bool:
    """
    Determine if an HTTP error should be retried.

    Retryable errors (transient failures):
    - Network errors (timeouts, connection errors)
    - 5xx server errors
    - 429 Too Many Requests
    - 408 Request Timeout

    Everything else, including 412 Precondition Failed on metadata updates,
    fails fast.
    """
    if isinstance(exception, (httpx.TimeoutException, httpx.NetworkError)):
        return True

    if isinstance(exception, httpx.HTTPStatusError):
        status_code = exception.response.status_code
        return 500 <= status_code < 600 or status_code in RETRYABLE_STATUS_CODES

    return False


def retry_external_api(service_name: str = "external_api") -> AsyncRetrying:
    """
    Create a tenacity AsyncRetrying instance for Google API calls.

    Usage:
        async for attempt in retry_external_api("BigQuery"):
            with attempt:
                response = await client.get(url)
                response.raise_for_status()

    Args:
        service_name: Name of the external service (for logging)

    Returns:
        AsyncRetrying instance configured with retry logic
    """
    return AsyncRetrying(
        stop=stop_after_attempt(settings.EXTERNAL_API_RETRY_ATTEMPTS),
        # With multiplier=1.0, min=0.5s, max=2.0s: 0.5s → 1.0s → 2.0s
        wait=wait_exponential(
            multiplier=settings.EXTERNAL_API_RETRY_MULTIPLIER,
            min=settings.EXTERNAL_API_RETRY_MIN_WAIT,
            max=settings.EXTERNAL_API_RETRY_MAX_WAIT,
        ),
        retry=retry_if_exception(is_retryable_http_error),
        before_sleep=before_sleep_log(
            logging.getLogger(f"{__name__}.{service_name}"), logging.WARNING
        ),
        reraise=True,
    )
