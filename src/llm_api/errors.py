"""Exception hierarchy for llm-api."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class LLMApiError(Exception):
    """Base exception for all llm-api errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(LLMApiError):
    """Configuration validation or resolution failed."""


class TokenError(LLMApiError):
    """The prompt does not leave enough room for the minimum response.

    Raised before any request is sent. ``overflow_tokens`` is how far the
    estimated prompt exceeds the prompt budget, so callers know how much to
    trim.
    """

    def __init__(
        self, message: str, overflow_tokens: int, *, hint: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.overflow_tokens = overflow_tokens


class ProtocolError(LLMApiError):
    """A message shape is not supported by the target provider."""


class MalformedResponseError(LLMApiError):
    """The provider answered with neither text nor a function call."""


class ParseError(LLMApiError):
    """Function call arguments could not be parsed, even leniently."""


class APIError(LLMApiError):
    """Provider call failed.

    Providers attach retry metadata so the orchestrator can perform bounded
    retries without brittle substring matching.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.provider = provider
        self.phase = phase


class AuthorizationError(APIError):
    """Credentials were rejected (HTTP 401/403). Never retried."""


class RateLimitError(APIError):
    """Rate limit exceeded (HTTP 429)."""


class ServerError(APIError):
    """Provider-side failure (HTTP 5xx)."""


class RequestTimeoutError(APIError):
    """The request timed out or the connection was reset."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, once each."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
