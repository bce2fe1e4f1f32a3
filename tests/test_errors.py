from __future__ import annotations

import asyncio

import httpx
import pytest

from llm_api.errors import (
    APIError,
    AuthorizationError,
    LLMApiError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    TokenError,
)
from llm_api.providers._errors import (
    extract_retry_after_s,
    extract_status_code,
    wrap_provider_error,
)
from llm_api.providers.anthropic_bedrock import stream_error
from tests.helpers import FakeClientError, FakeStatusError

pytestmark = pytest.mark.unit


def test_api_error_structured_metadata() -> None:
    err = APIError(
        "boom",
        hint="do this",
        retryable=True,
        status_code=429,
        retry_after_s=2.0,
        provider="openai",
        phase="completion",
    )

    assert str(err) == "boom"
    assert err.hint == "do this"
    assert err.retryable is True
    assert err.status_code == 429
    assert err.retry_after_s == 2.0
    assert err.provider == "openai"
    assert err.phase == "completion"


def test_api_error_defaults_to_none() -> None:
    err = APIError("fail")
    assert err.hint is None
    assert err.retryable is None
    assert err.status_code is None
    assert err.retry_after_s is None
    assert err.provider is None
    assert err.phase is None


def test_every_error_shares_the_base_class() -> None:
    assert issubclass(APIError, LLMApiError)
    assert issubclass(RateLimitError, APIError)
    err = TokenError("too big", 5)
    assert isinstance(err, LLMApiError)
    assert err.overflow_tokens == 5


# =============================================================================
# Status and retry-after extraction
# =============================================================================


def test_extract_status_code_walks_the_cause_chain() -> None:
    try:
        try:
            raise FakeStatusError(503)
        except FakeStatusError as inner:
            raise RuntimeError("wrapped") from inner
    except RuntimeError as outer:
        assert extract_status_code(outer) == 503


def test_extract_status_code_reads_botocore_metadata() -> None:
    assert extract_status_code(FakeClientError("AccessDenied", 403)) == 403
    assert extract_status_code(FakeClientError("Unknown")) is None


def test_extract_status_code_ignores_out_of_range_values() -> None:
    err = Exception("odd")
    err.status_code = 42  # type: ignore[attr-defined]
    assert extract_status_code(err) is None


@pytest.mark.parametrize(
    ("header", "expected"),
    [("2", 2.0), ("0.5", 0.5), ("soon", None), ("-1", None), (None, None)],
)
def test_extract_retry_after_from_headers(header, expected) -> None:
    err = FakeStatusError(429, retry_after=header)
    assert extract_retry_after_s(err) == expected


# =============================================================================
# wrap_provider_error
# =============================================================================


@pytest.mark.parametrize(
    ("status", "err_cls", "retryable"),
    [
        (401, AuthorizationError, False),
        (403, AuthorizationError, False),
        (429, RateLimitError, True),
        (500, ServerError, True),
        (529, ServerError, True),
        (400, APIError, False),
        (404, APIError, False),
    ],
)
def test_wrap_maps_status_to_error_class(status, err_cls, retryable) -> None:
    wrapped = wrap_provider_error(FakeStatusError(status, "nope"), provider="groq")

    assert type(wrapped) is err_cls
    assert wrapped.retryable is retryable
    assert wrapped.status_code == status
    assert wrapped.provider == "groq"
    assert wrapped.phase == "completion"
    assert f"status={status}" in str(wrapped)


def test_wrap_auth_error_names_the_env_var() -> None:
    wrapped = wrap_provider_error(FakeStatusError(401), provider="anthropic")
    assert "ANTHROPIC_API_KEY" in (wrapped.hint or "")


def test_wrap_auth_error_for_bedrock_points_at_aws() -> None:
    wrapped = wrap_provider_error(FakeClientError("X", 403), provider="bedrock")
    assert "AWS" in (wrapped.hint or "")


def test_wrap_carries_retry_after() -> None:
    wrapped = wrap_provider_error(
        FakeStatusError(429, retry_after="7"), provider="openai"
    )
    assert wrapped.retry_after_s == 7.0


def test_wrap_explicit_status_wins() -> None:
    wrapped = wrap_provider_error(
        FakeClientError("ThrottlingException"), provider="bedrock", status_code=429
    )
    assert isinstance(wrapped, RateLimitError)


@pytest.mark.parametrize(
    "exc",
    [
        httpx.ReadTimeout("slow"),
        httpx.ConnectError("refused"),
        ConnectionResetError("reset"),
        TimeoutError(),
    ],
)
def test_wrap_transport_failures_as_retryable_timeouts(exc) -> None:
    wrapped = wrap_provider_error(exc, provider="openai")

    assert isinstance(wrapped, RequestTimeoutError)
    assert wrapped.retryable is True
    assert wrapped.status_code is None


def test_wrap_unknown_failure_is_not_retryable() -> None:
    wrapped = wrap_provider_error(ValueError("weird"), provider="openai")

    assert type(wrapped) is APIError
    assert wrapped.retryable is False
    assert "weird" in str(wrapped)


def test_wrap_enriches_an_existing_api_error() -> None:
    original = RateLimitError("slow down", retryable=True)

    wrapped = wrap_provider_error(original, provider="groq", phase="stream")

    assert wrapped is original
    assert wrapped.provider == "groq"
    assert wrapped.phase == "stream"


def test_wrap_keeps_existing_context() -> None:
    original = ServerError("boom", provider="bedrock", phase="stream")

    wrapped = wrap_provider_error(original, provider="openai")

    assert wrapped.provider == "bedrock"
    assert wrapped.phase == "stream"


def test_wrap_reraises_cancellation() -> None:
    with pytest.raises(asyncio.CancelledError):
        wrap_provider_error(asyncio.CancelledError(), provider="openai")


# =============================================================================
# Bedrock stream error events
# =============================================================================


@pytest.mark.parametrize(
    ("key", "err_cls", "status", "retryable"),
    [
        ("throttlingException", RateLimitError, 429, True),
        ("internalServerException", ServerError, 500, True),
        ("serviceUnavailableException", ServerError, 503, True),
        ("modelStreamErrorException", ServerError, 500, True),
        ("modelTimeoutException", RequestTimeoutError, 408, True),
        ("validationException", APIError, 400, False),
    ],
)
def test_bedrock_stream_error_events(key, err_cls, status, retryable) -> None:
    err = stream_error({key: {"message": "details"}})

    assert type(err) is err_cls
    assert err.status_code == status
    assert err.retryable is retryable
    assert err.phase == "stream"
    assert "details" in str(err)


def test_bedrock_stream_error_ignores_unknown_events() -> None:
    assert stream_error({"somethingElse": {}}) is None
