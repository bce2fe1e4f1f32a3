"""Anthropic models hosted on AWS Bedrock.

Bedrock speaks the same text completion format as the native Anthropic
provider, wrapped in a JSON body. boto3 is synchronous, so each blocking call
runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from llm_api.aggregation import classify, finalize_text
from llm_api.config import BedrockConfig, ModelConfig, RequestOptions
from llm_api.constants import (
    BEDROCK_ANTHROPIC_VERSION,
    DEFAULT_BEDROCK_MODEL,
    DEFAULT_TIMEOUT_S,
)
from llm_api.envelope import build_response
from llm_api.errors import (
    APIError,
    LLMApiError,
    MalformedResponseError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
)
from llm_api.events import emit_data, end_of_stream
from llm_api.providers._errors import wrap_provider_error
from llm_api.providers._utils import stop_sequences
from llm_api.providers.anthropic import (
    ANTHROPIC_REQUEST_DEFAULTS,
    prepare_legacy_prompt,
)
from llm_api.retry import retry_with_backoff
from llm_api.tokens import count_tokens
from llm_api.types import Message, Usage

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from llm_api.events import EventSink
    from llm_api.types import ChatResponse, Completion, ModelFunction

logger = logging.getLogger(__name__)

_METRICS_KEY = "amazon-bedrock-invocationMetrics"

# Bedrock error names (stream event keys and ClientError codes) to
# (error class, HTTP status, retryable).
_BEDROCK_ERRORS: dict[str, tuple[type[APIError], int, bool]] = {
    "throttlingException": (RateLimitError, 429, True),
    "internalServerException": (ServerError, 500, True),
    "serviceUnavailableException": (ServerError, 503, True),
    "modelStreamErrorException": (ServerError, 500, True),
    "modelTimeoutException": (RequestTimeoutError, 408, True),
    "validationException": (APIError, 400, False),
}


def _error_code(exc: BaseException) -> str | None:
    """Return the botocore ClientError code, e.g. ``ThrottlingException``."""
    response = getattr(exc, "response", None)
    if not isinstance(response, dict):
        return None
    return response.get("Error", {}).get("Code")


def _error_status(code: str | None) -> int | None:
    """Map a botocore error code (``ThrottlingException``) to its HTTP status."""
    if not code:
        return None
    entry = _BEDROCK_ERRORS.get(code[:1].lower() + code[1:])
    return entry[1] if entry else None


def stream_error(event: dict[str, Any]) -> APIError | None:
    """Return the typed error carried by a stream event, if any."""
    for key, (err_cls, status, retryable) in _BEDROCK_ERRORS.items():
        if key in event:
            detail = event[key] or {}
            message = detail.get("message") if isinstance(detail, dict) else None
            return err_cls(
                f"Bedrock stream error ({key}): {message or 'no details'}",
                retryable=retryable,
                status_code=status,
                provider="bedrock",
                phase="stream",
            )
    return None


def _is_socket_timeout(exc: BaseException) -> bool:
    from botocore.exceptions import ConnectTimeoutError, ReadTimeoutError

    return isinstance(exc, (ConnectTimeoutError, ReadTimeoutError))


def _usage_from_metrics(metrics: dict[str, Any] | None) -> Usage | None:
    if not metrics:
        return None
    prompt = int(metrics.get("inputTokenCount", 0) or 0)
    completion = int(metrics.get("outputTokenCount", 0) or 0)
    return Usage(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
    )


def _usage_from_headers(response: dict[str, Any]) -> Usage | None:
    headers = response.get("ResponseMetadata", {}).get("HTTPHeaders", {})
    prompt = headers.get("x-amzn-bedrock-input-token-count")
    completion = headers.get("x-amzn-bedrock-output-token-count")
    if prompt is None or completion is None:
        return None
    return Usage(
        prompt_tokens=int(prompt),
        completion_tokens=int(completion),
        total_tokens=int(prompt) + int(completion),
    )


class AnthropicBedrockChatApi:
    """Anthropic text completions served by ``bedrock-runtime``."""

    provider_name = "bedrock"

    def __init__(
        self,
        config: BedrockConfig | None = None,
        model_config: ModelConfig | None = None,
    ) -> None:
        self.config = config if config is not None else BedrockConfig()
        self.model_config = model_config if model_config is not None else ModelConfig()
        self._client: Any = None
        self._client_timeout: float | None = None

    def _get_client(self, timeout: float) -> Any:
        """Return a bedrock-runtime client whose socket timeouts are *timeout*.

        boto3 blocks a worker thread that ``asyncio.wait_for`` cannot stop, so
        the attempt timeout is enforced by botocore on the socket. The client is
        rebuilt when a call asks for a different timeout; an injected client
        (no recorded timeout) is used as is.
        """
        if self._client is None or self._client_timeout not in (None, timeout):
            try:
                import boto3
                from botocore.config import Config
            except ImportError as e:
                raise APIError(
                    "boto3 package not installed",
                    hint="pip install boto3",
                ) from e
            kwargs: dict[str, Any] = {"region_name": self.config.region}
            if self.config.access_key_id:
                kwargs["aws_access_key_id"] = self.config.access_key_id
                kwargs["aws_secret_access_key"] = self.config.secret_access_key
            if self.config.session_token:
                kwargs["aws_session_token"] = self.config.session_token
            self._client = boto3.client(
                "bedrock-runtime",
                config=Config(
                    # Retries belong to retry_with_backoff.
                    retries={"max_attempts": 0},
                    connect_timeout=timeout,
                    read_timeout=timeout,
                ),
                **kwargs,
            )
            self._client_timeout = timeout
        return self._client

    def get_tokens_from_prompt(
        self,
        texts: Sequence[str],
        functions: Sequence[ModelFunction | dict[str, Any]] | None = None,
    ) -> int:
        return count_tokens(texts, functions)

    async def chat_completion(
        self,
        messages: Sequence[Message],
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        final_options = (options or RequestOptions()).with_defaults(
            **ANTHROPIC_REQUEST_DEFAULTS
        )
        with end_of_stream(final_options.events, streaming=self.model_config.stream):
            completion = await self._complete(messages, final_options)
        return build_response(completion, messages, options, self.chat_completion)

    async def _complete(
        self, messages: Sequence[Message], options: RequestOptions
    ) -> Completion:
        prompt, max_tokens = prepare_legacy_prompt(
            "Bedrock", messages, self.model_config, options
        )

        payload: dict[str, Any] = {
            "prompt": prompt,
            "max_tokens_to_sample": max_tokens,
            "top_p": self.model_config.top_p if self.model_config.top_p else 1,
            "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
        }
        if self.model_config.temperature is not None:
            payload["temperature"] = self.model_config.temperature
        stop = stop_sequences(self.model_config, options)
        if stop:
            payload["stop_sequences"] = stop
        params = {
            "modelId": self.model_config.model or DEFAULT_BEDROCK_MODEL,
            "contentType": "application/json",
            "accept": "*/*",
            "body": json.dumps(payload),
        }
        return await retry_with_backoff(
            lambda opts: self._attempt(params, opts), options
        )

    async def text_completion(
        self,
        prompt: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        return await self.chat_completion([Message.user(prompt)], options)

    async def _attempt(
        self, params: dict[str, Any], options: RequestOptions
    ) -> Completion:
        timeout = options.timeout if options.timeout is not None else DEFAULT_TIMEOUT_S
        client = self._get_client(timeout)
        try:
            if self.model_config.stream:
                text, usage = await self._read_stream(client, params, options)
            else:
                text, usage = await self._invoke(client, params)
        except asyncio.CancelledError:
            raise
        except LLMApiError:
            raise
        except Exception as e:
            if _is_socket_timeout(e):
                raise RequestTimeoutError(
                    f"Bedrock request timed out after {timeout}s: {e}",
                    retryable=True,
                    provider=self.provider_name,
                    phase="request",
                ) from e
            raise wrap_provider_error(
                e,
                provider=self.provider_name,
                message="Bedrock completion failed",
                status_code=_error_status(_error_code(e)),
            ) from e
        return classify(
            finalize_text(text, options.response_prefix, trim=True), None, usage
        )

    async def _invoke(
        self, client: Any, params: dict[str, Any]
    ) -> tuple[str, Usage | None]:
        def _call() -> tuple[dict[str, Any], bytes]:
            response = client.invoke_model(**params)
            return response, response["body"].read()

        response, raw = await asyncio.to_thread(_call)
        try:
            body = json.loads(raw)
        except ValueError as e:
            raise MalformedResponseError(
                f"Bedrock returned a non-JSON body: {raw[:200]!r}"
            ) from e
        text = body.get("completion") or ""
        logger.debug("completion received: %r", text)
        usage = _usage_from_metrics(body.get(_METRICS_KEY)) or _usage_from_headers(
            response
        )
        return text, usage

    async def _read_stream(
        self, client: Any, params: dict[str, Any], options: RequestOptions
    ) -> tuple[str, Usage | None]:
        events: EventSink | None = options.events
        response = await asyncio.to_thread(
            client.invoke_model_with_response_stream, **params
        )
        stream: Iterator[dict[str, Any]] = iter(response.get("body") or ())

        # The prefix counts as part of the response.
        if options.response_prefix:
            emit_data(events, options.response_prefix)

        parts: list[str] = []
        usage = None
        while True:
            event = await asyncio.to_thread(next, stream, None)
            if event is None:
                break
            chunk = event.get("chunk")
            if chunk is None:
                error = stream_error(event)
                if error is not None:
                    raise error
                continue
            data = json.loads(chunk["bytes"])
            text = data.get("completion")
            if text:
                logger.debug("stream fragment: %r", text)
                parts.append(text)
                emit_data(events, text)
            usage = _usage_from_metrics(data.get(_METRICS_KEY)) or usage

        logger.debug("stream response end")
        return "".join(parts), usage

