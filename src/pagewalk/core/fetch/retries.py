"""
Retry policy for rate-limited requests, built on tenacity.

Only HTTP 429 is retried. The delay between attempts comes from the
shared backoff window rather than from tenacity's wait strategies, so
every caller of a dispatcher honours the same deadline.
"""

from __future__ import annotations

import logging

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    stop_never,
    wait_none,
)

from ..backends.base import RateLimitError

logger = logging.getLogger(__name__)


def _log_rate_limited(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    url = getattr(exc, "url", None)
    logger.info(
        "Retrying %s after rate limit (attempt %d)",
        url,
        retry_state.attempt_number + 1,
        extra={"url": url},
    )


def rate_limit_retrying(max_attempts: int | None = None) -> AsyncRetrying:
    """Build the retry loop used inside one dispatcher call.

    Args:
        max_attempts: Total attempts before the RateLimitError is
            re-raised. None retries for as long as the server keeps
            answering 429.

    Returns:
        A fresh AsyncRetrying iterator
    """
    return AsyncRetrying(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(max_attempts) if max_attempts is not None else stop_never,
        wait=wait_none(),
        before_sleep=_log_rate_limited,
        reraise=True,
    )
