"""OpenAI chat completions provider (tool calling)."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from llm_api.aggregation import ToolCallAccumulator, classify
from llm_api.budget import check_token_budget, max_response_tokens
from llm_api.config import ModelConfig, OpenAIConfig, RequestOptions
from llm_api.constants import (
    DEFAULT_OPENAI_MODEL,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_INTERVAL_S,
    DEFAULT_TIMEOUT_S,
    MINIMUM_RESPONSE_TOKENS,
)
from llm_api.envelope import build_response
from llm_api.errors import APIError, LLMApiError, MalformedResponseError
from llm_api.events import emit_data, end_of_stream
from llm_api.prompts import check_roles, with_system_message
from llm_api.providers._errors import wrap_provider_error
from llm_api.providers._utils import (
    log_request,
    new_call_id,
    openai_client_kwargs,
    sampling_params,
    stop_sequences,
    usage_from_openai,
)
from llm_api.retry import retry_with_backoff
from llm_api.tokens import count_tokens
from llm_api.types import FunctionCall, Message, ToolCall

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.events import EventSink
    from llm_api.types import ChatResponse, Completion, ModelFunction

logger = logging.getLogger(__name__)

# No maximum_response_tokens default: OpenAI rejects max_tokens above the
# model's context size, which differs per model.
_REQUEST_DEFAULTS: dict[str, Any] = {
    "retries": DEFAULT_RETRIES,
    "retry_interval": DEFAULT_RETRY_INTERVAL_S,
    "timeout": DEFAULT_TIMEOUT_S,
    "minimum_response_tokens": MINIMUM_RESPONSE_TOKENS,
}
_SUPPORTED_ROLES = ("system", "user", "assistant", "tool")


class OpenAIChatApi:
    """OpenAI (and Azure OpenAI) chat completions with tool calling."""

    provider_name = "openai"

    def __init__(
        self,
        config: OpenAIConfig | None = None,
        model_config: ModelConfig | None = None,
    ) -> None:
        """Initialize with connection settings and model settings."""
        self.config = config if config is not None else OpenAIConfig()
        self.model_config = model_config if model_config is not None else ModelConfig()
        self._client_kwargs = openai_client_kwargs(self.config)
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError as e:
                raise APIError(
                    "openai package not installed",
                    hint="pip install openai",
                ) from e
            self._client = AsyncOpenAI(**self._client_kwargs)
        return self._client

    @property
    def is_azure(self) -> bool:
        return self.config.is_azure

    def get_tokens_from_prompt(
        self,
        texts: Sequence[str],
        functions: Sequence[ModelFunction | dict[str, Any]] | None = None,
    ) -> int:
        """Estimate prompt tokens without sending a request."""
        return count_tokens(texts, functions)

    async def chat_completion(
        self,
        messages: Sequence[Message],
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        """Complete a conversation, answering with text or one tool call."""
        final_options = (options or RequestOptions()).with_defaults(
            **_REQUEST_DEFAULTS
        )
        with end_of_stream(final_options.events, streaming=self.model_config.stream):
            completion = await self._complete(messages, final_options)
        return build_response(completion, messages, options, self.chat_completion)

    async def _complete(
        self, messages: Sequence[Message], options: RequestOptions
    ) -> Completion:
        if options.response_prefix:
            logger.warning("OpenAI models do not support response_prefix; ignoring it")

        prepared = with_system_message(messages, options)
        check_roles(prepared, _SUPPORTED_ROLES, "OpenAI")
        log_request(self.provider_name, prepared, self.model_config, options)

        prompt_tokens = check_token_budget(
            self.model_config,
            options,
            [m.content or "" for m in prepared],
            options.functions,
        )
        body = self._build_body(prepared, options, prompt_tokens)

        return await retry_with_backoff(
            lambda opts: self._attempt(body, opts), options
        )

    async def text_completion(
        self,
        prompt: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        """Complete a single user prompt."""
        return await self.chat_completion([Message.user(prompt)], options)

    def _build_body(
        self,
        messages: Sequence[Message],
        options: RequestOptions,
        prompt_tokens: int,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model_config.model or DEFAULT_OPENAI_MODEL,
            "n": 1,
            "messages": [_to_openai_message(m) for m in messages],
            **sampling_params(self.model_config),
        }
        max_tokens = max_response_tokens(self.model_config, options, prompt_tokens)
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        stop = stop_sequences(self.model_config, options)
        if stop:
            body["stop"] = stop
        if options.functions:
            body["tools"] = [
                {"type": "function", "function": f.to_dict()} for f in options.functions
            ]
            body["tool_choice"] = (
                {"type": "function", "function": {"name": options.call_function}}
                if options.call_function
                else "auto"
            )
        return body

    async def _attempt(
        self, body: dict[str, Any], options: RequestOptions
    ) -> Completion:
        """Issue one request and classify its answer."""
        client = self._get_client()
        try:
            if self.model_config.stream:
                return await self._read_stream(client, body, options.events)
            response = await client.chat.completions.create(**body, stream=False)
            return _parse_response(response)
        except asyncio.CancelledError:
            raise
        except LLMApiError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider=self.provider_name,
                message="OpenAI completion failed",
            ) from e

    async def _read_stream(
        self, client: Any, body: dict[str, Any], events: EventSink | None
    ) -> Completion:
        stream = await client.chat.completions.create(**body, stream=True)

        text_parts: list[str] = []
        call = ToolCallAccumulator()
        call_index: int | None = None
        usage = None
        async for chunk in stream:
            if getattr(chunk, "usage", None) is not None:
                usage = usage_from_openai(chunk.usage)
            choices = getattr(chunk, "choices", None)
            if not choices:
                continue
            delta = choices[0].delta
            text = getattr(delta, "content", None)
            tool_calls = getattr(delta, "tool_calls", None)
            if text:
                logger.debug("stream fragment: %r", text)
                text_parts.append(text)
                emit_data(events, text)
            elif tool_calls:
                fragment = tool_calls[0]
                index = getattr(fragment, "index", 0)
                if call_index is None:
                    call_index = index
                elif index != call_index:
                    logger.debug("Ignoring fragment of additional tool call %s", index)
                    continue
                function = getattr(fragment, "function", None)
                call.add(
                    id=getattr(fragment, "id", None),
                    name=getattr(function, "name", None),
                    arguments=getattr(function, "arguments", None),
                )
                logger.debug("stream tool call fragment: %r", function)

        logger.debug("stream response end")
        return classify("".join(text_parts), call.build(new_call_id()), usage)


def _to_openai_message(message: Message) -> dict[str, Any]:
    """Map a Message to the chat completions wire format."""
    if message.role == "assistant":
        wire: dict[str, Any] = {"role": "assistant", "content": message.content}
        if message.tool_call is not None:
            wire["tool_calls"] = [message.tool_call.to_dict()]
        return wire
    if message.role == "tool":
        return {
            "role": "tool",
            "content": message.content or "",
            "tool_call_id": message.tool_call_id or "",
        }
    return {"role": message.role, "content": message.content or ""}


def _parse_response(response: Any) -> Completion:
    """Classify a non-streamed chat completion."""
    error = getattr(response, "error", None)
    if error:
        raise MalformedResponseError(f"Completion response carried an error: {error}")
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedResponseError("Completion response malformed: no choices")

    message = choices[0].message
    text = getattr(message, "content", None) or ""
    raw_calls = getattr(message, "tool_calls", None) or []
    tool_call = None
    if raw_calls:
        raw = raw_calls[0]
        tool_call = ToolCall(
            id=getattr(raw, "id", None) or new_call_id(),
            function=FunctionCall(
                name=raw.function.name,
                arguments=raw.function.arguments or "",
            ),
        )
    logger.debug("completion received: %r", text)
    usage = usage_from_openai(getattr(response, "usage", None))
    return classify(text, tool_call, usage)
