"""Retry with exponential backoff for retrieval service calls.

Private module - import from _retry package.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import tenacity

from codebase_context.clients._retry.httpx_errors import classify_error, describe_error
from codebase_context.errors import ErrorKind, ServiceError

__all__ = [
    'with_retry',
]

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int,
    base_delay: float,
    description: str,
) -> T:
    """Run operation, retrying transient failures.

    Waits base_delay * 2**n seconds before retry n+1. Auth, forbidden, TLS and
    unclassified failures are raised immediately.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        max_attempts: Total attempts including the first.
        base_delay: Delay before the first retry, in seconds.
        description: Names the call in log messages (e.g. 'upload batch 3/7').

    Raises:
        ServiceError: Classified failure after the last attempt.
    """

    def log_retry(retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if exc is None:
            return
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f'[RETRY] {description} attempt {retry_state.attempt_number}/{max_attempts} failed: '
            f'{describe_error(ErrorKind.TRANSIENT, exc)} ({type(exc).__name__}), retrying in {delay:.1f}s'
        )

    retrying = tenacity.AsyncRetrying(
        retry=tenacity.retry_if_exception(lambda exc: classify_error(exc) is ErrorKind.TRANSIENT),
        stop=tenacity.stop_after_attempt(max_attempts),
        wait=tenacity.wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        before_sleep=log_retry,
        reraise=True,
    )

    # AsyncRetrying calls non-coroutine functions synchronously
    async def attempt() -> T:
        return await operation()

    try:
        return await retrying(attempt)
    except ServiceError:
        raise
    except Exception as e:
        kind = classify_error(e)
        message = describe_error(kind, e)
        attempts = retrying.statistics.get('attempt_number', 1)
        logger.error(f'[RETRY] {description} failed after {attempts} attempt(s) [{kind}]: {message}')
        raise ServiceError(kind, message) from e
