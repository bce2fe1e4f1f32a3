"""Shared provider-side error helpers.

Providers attach retry metadata via APIError so the retry controller can be
bounded and deterministic without brittle substring matching.
"""

from __future__ import annotations

import asyncio
from typing import Any

from llm_api._http import is_auth_status, is_retryable_status
from llm_api.errors import (
    APIError,
    AuthorizationError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    _walk_exception_chain,
)
from llm_api.retry import is_transport_error

_API_KEY_ENV_VARS = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "groq": "GROQ_API_KEY",
}


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
        # botocore ClientError keeps the parsed response as a dict.
        if isinstance(response, dict):
            metadata = response.get("ResponseMetadata")
            if isinstance(metadata, dict):
                value = metadata.get("HTTPStatusCode")
                if isinstance(value, int) and 100 <= value <= 599:
                    return value
    return None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Walk the exception chain to find a retry-after delay in seconds."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)

        response = getattr(e, "response", None)
        headers: Any = getattr(response, "headers", None)
        if headers is None:
            continue
        raw: Any = None
        try:
            raw = headers.get("Retry-After")
        except Exception:
            raw = None
        if isinstance(raw, str) and raw.strip():
            try:
                seconds = float(raw)
            except ValueError:
                continue
            if seconds >= 0:
                return seconds
    return None


def _auth_hint(provider: str, status_code: int | None) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    if not is_auth_status(status_code):
        return None
    env_var = _API_KEY_ENV_VARS.get(provider)
    if env_var is None:
        return "Check the AWS credentials and Bedrock model access."
    return f"Check credentials/permissions (try setting {env_var} or api_key=...)."


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str = "completion",
    message: str | None = None,
    status_code: int | None = None,
) -> APIError:
    """Map provider SDK exceptions into APIError with stable retry metadata.

    The returned class follows the failure: ``AuthorizationError`` for
    401/403, ``RateLimitError`` for 429, ``ServerError`` for 5xx and
    ``RequestTimeoutError`` for transport timeouts and resets.
    """
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, APIError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc

    if status_code is None:
        status_code = extract_status_code(exc)
    retry_after_s = extract_retry_after_s(exc)

    err_cls: type[APIError] = APIError
    retryable = False
    if is_auth_status(status_code):
        err_cls = AuthorizationError
    elif status_code == 429:
        err_cls = RateLimitError
        retryable = True
    elif is_retryable_status(status_code):
        err_cls = ServerError
        retryable = True
    elif status_code is None and is_transport_error(exc):
        err_cls = RequestTimeoutError
        retryable = True

    msg = message or f"{provider} {phase} failed"
    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    cause = str(exc)
    return err_cls(
        f"{msg}{status_note}: {cause}" if cause else f"{msg}{status_note}",
        hint=_auth_hint(provider, status_code),
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
    )
