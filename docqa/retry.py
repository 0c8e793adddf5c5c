"""
Retry with exponential backoff for the remote model calls.

Embedding and answer requests fail transiently (timeouts, rate limits).
Each request is attempted up to RetryConfig.max_attempts times, waiting
base_delay, 2 * base_delay, ... (capped at max_delay) between attempts.
When every attempt fails the last error is wrapped in ExternalServiceError
so callers see a single "service unavailable" condition.
"""

from typing import Callable, Optional, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.settings import RetryConfig
from docqa.errors import AppError, ExternalServiceError

logger = structlog.get_logger()

T = TypeVar("T")


def _log_before_sleep(operation: str) -> Callable[[RetryCallState], None]:
    def _log(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            f"{operation}_retry",
            attempt=state.attempt_number,
            next_wait_seconds=state.next_action.sleep if state.next_action else None,
            error=str(error),
            error_type=type(error).__name__,
        )

    return _log


def call_with_retry(
    fn: Callable[[], T],
    retry_config: RetryConfig,
    service: str,
    operation: str,
    sleep: Optional[Callable[[float], None]] = None,
) -> T:
    """
    Run fn with exponential backoff.

    Args:
        fn: Zero-argument callable performing one remote request
        retry_config: Attempts and delays
        service: Human-readable service name used in ExternalServiceError
        operation: snake_case name used in log events
        sleep: Override for time.sleep (tests)

    Raises:
        ExternalServiceError: once all attempts have failed
    """
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep

    retrying = Retrying(
        stop=stop_after_attempt(retry_config.max_attempts),
        wait=wait_exponential(
            multiplier=retry_config.base_delay,
            max=retry_config.max_delay,
        ),
        retry=retry_if_not_exception_type(AppError),
        before_sleep=_log_before_sleep(operation),
        reraise=True,
        **kwargs,
    )

    try:
        return retrying(fn)
    except AppError:
        raise
    except Exception as e:
        logger.error(
            f"{operation}_failed",
            attempts=retry_config.max_attempts,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise ExternalServiceError(service, e) from e
