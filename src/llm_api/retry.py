"""Bounded retry with exponential backoff.

Design goals:
- Explicit state: the remaining retries and the next delay travel inside a
  fresh ``RequestOptions`` per attempt, never in a shared counter
- A closed set of retryable failures: HTTP 429, HTTP 5xx, timeouts and
  connection resets
- No brittle substring matching for retry decisions
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

import httpx

from llm_api._http import is_auth_status, is_retryable_status
from llm_api.constants import DEFAULT_TIMEOUT_S
from llm_api.errors import (
    APIError,
    LLMApiError,
    RequestTimeoutError,
    _walk_exception_chain,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from llm_api.config import RequestOptions

T = TypeVar("T")

logger = logging.getLogger(__name__)


def is_transport_error(exc: BaseException) -> bool:
    """Return True for timeouts, aborts and connection resets anywhere in the chain."""
    for e in _walk_exception_chain(exc):
        if isinstance(e, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
            return True
        # TransportError covers timeouts, connect/read errors and
        # remote protocol errors (connection dropped mid-response).
        if isinstance(e, (httpx.TimeoutException, httpx.TransportError)):
            return True
    return False


def is_retryable(exc: BaseException) -> bool:
    """Return True when another attempt may succeed.

    Contract:
    - Cancellation is never retried.
    - Local failures (token budget, protocol, malformed response, parse)
      are never retried.
    - APIError is retried when the provider marks it retryable or reports
      HTTP 429/5xx; authorization failures never are.
    - Raw timeouts and connection resets are retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False

    if isinstance(exc, APIError):
        if is_auth_status(exc.status_code):
            return False
        return exc.retryable is True or is_retryable_status(exc.status_code)

    if isinstance(exc, LLMApiError):
        return False

    return is_transport_error(exc)


async def retry_with_backoff(
    attempt: Callable[[RequestOptions], Awaitable[T]],
    options: RequestOptions,
) -> T:
    """Run *attempt* under the per-attempt timeout, retrying transient failures.

    Each retry sleeps ``options.retry_interval`` and then recurses with
    ``options.next_retry()``, so the i-th retry waits ``initial * 2**(i-1)``.
    When no retries remain the last error is re-raised unchanged.
    """
    timeout = options.timeout if options.timeout is not None else DEFAULT_TIMEOUT_S
    try:
        try:
            return await asyncio.wait_for(attempt(options), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"Request timed out after {timeout}s",
                retryable=True,
                phase="request",
            ) from e
    except Exception as exc:
        retries = options.retries or 0
        if retries <= 0 or not is_retryable(exc):
            raise

        delay = options.retry_interval or 0.0
        logger.warning(
            "Retrying after %s: %s (sleep=%.2fs, retries_left=%d)",
            type(exc).__name__,
            exc,
            delay,
            retries - 1,
        )
        if delay > 0:
            await asyncio.sleep(delay)

    return await retry_with_backoff(attempt, options.next_retry())
