"""
Retry decorators with exponential backoff, built on tenacity.

Only side-effect free calls may be retried. Posting an invoice to FBR is never
wrapped: a second post can create a duplicate tax filing.

Usage:
    from fbr_invoicing.core.retry import fbr_validate_retry

    @fbr_validate_retry(max_attempts=3)
    def call_validate():
        ...
"""
import logging
from typing import Callable, TypeVar, Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from fbr_invoicing.config.timeouts import FBR_VALIDATE_RETRY_MIN_WAIT, FBR_VALIDATE_RETRY_MAX_WAIT
from fbr_invoicing.core.exceptions import GatewayUnreachable

logger = logging.getLogger(__name__)

F = TypeVar('F', bound=Callable[..., Any])


def fbr_validate_retry(
    max_attempts: int = 1,
    min_wait: float = FBR_VALIDATE_RETRY_MIN_WAIT,
    max_wait: float = FBR_VALIDATE_RETRY_MAX_WAIT,
) -> Callable[[F], F]:
    """
    Retry decorator for the FBR validation call.

    Args:
        max_attempts: Total attempts, 1 disables retrying.
        min_wait: Minimum wait between attempts (seconds).
        max_wait: Maximum wait between attempts (seconds).

    Only GatewayUnreachable triggers a retry; structured rejections, auth and
    configuration errors are raised immediately.
    """
    return retry(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(GatewayUnreachable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )
