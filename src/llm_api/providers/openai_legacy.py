"""OpenAI chat completions provider using the legacy ``functions`` API.

Older deployments predate tool calling: the model calls at most one
function per turn, and the conversation has no ``tool`` role. Tool results
are therefore sent back as ``user`` turns.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from llm_api.aggregation import ToolCallAccumulator, classify
from llm_api.budget import check_token_budget, max_response_tokens
from llm_api.config import ModelConfig, OpenAIConfig, RequestOptions
from llm_api.constants import DEFAULT_OPENAI_MODEL
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
from llm_api.providers.openai import _REQUEST_DEFAULTS
from llm_api.retry import retry_with_backoff
from llm_api.tokens import count_tokens
from llm_api.types import FunctionCall, Message, ToolCall

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.events import EventSink
    from llm_api.types import ChatResponse, Completion, ModelFunction

logger = logging.getLogger(__name__)

_SUPPORTED_ROLES = ("system", "user", "assistant", "tool")


class OpenAILegacyChatApi:
    """OpenAI chat completions with ``functions`` / ``function_call``."""

    provider_name = "openai"

    def __init__(
        self,
        config: OpenAIConfig | None = None,
        model_config: ModelConfig | None = None,
    ) -> None:
        self.config = config if config is not None else OpenAIConfig()
        self.model_config = model_config if model_config is not None else ModelConfig()
        self._client_kwargs = openai_client_kwargs(self.config)
        self._client: Any = None

    def _get_client(self) -> Any:
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
        return count_tokens(texts, functions)

    async def chat_completion(
        self,
        messages: Sequence[Message],
        options: RequestOptions | None = None,
    ) -> ChatResponse:
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
        return await retry_with_backoff(lambda opts: self._attempt(body, opts), options)

    async def text_completion(
        self,
        prompt: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
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
            "messages": [_to_legacy_message(m) for m in messages],
            **sampling_params(self.model_config),
        }
        max_tokens = max_response_tokens(self.model_config, options, prompt_tokens)
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        stop = stop_sequences(self.model_config, options)
        if stop:
            body["stop"] = stop
        if options.functions:
            body["functions"] = [f.to_dict() for f in options.functions]
            body["function_call"] = (
                {"name": options.call_function} if options.call_function else "auto"
            )
        return body

    async def _attempt(
        self, body: dict[str, Any], options: RequestOptions
    ) -> Completion:
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
        usage = None
        async for chunk in stream:
            if getattr(chunk, "usage", None) is not None:
                usage = usage_from_openai(chunk.usage)
            choices = getattr(chunk, "choices", None)
            if not choices:
                continue
            delta = choices[0].delta
            text = getattr(delta, "content", None)
            function_call = getattr(delta, "function_call", None)
            if text:
                logger.debug("stream fragment: %r", text)
                text_parts.append(text)
                emit_data(events, text)
            elif function_call is not None:
                call.add(
                    name=getattr(function_call, "name", None),
                    arguments=getattr(function_call, "arguments", None),
                )

        logger.debug("stream response end")
        return classify("".join(text_parts), call.build(new_call_id()), usage)


def _to_legacy_message(message: Message) -> dict[str, Any]:
    if message.role == "assistant":
        wire: dict[str, Any] = {"role": "assistant", "content": message.content}
        if message.tool_call is not None:
            function = message.tool_call.function
            wire["function_call"] = {
                "name": function.name,
                "arguments": function.arguments,
            }
        return wire
    if message.role == "tool":
        # No tool role here; the result goes back as a user turn.
        return {"role": "user", "content": message.content}
    return {"role": message.role, "content": message.content}


def _parse_response(response: Any) -> Completion:
    error = getattr(response, "error", None)
    if error:
        raise MalformedResponseError(f"Completion response carried an error: {error}")
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedResponseError("Completion response malformed: no choices")

    message = choices[0].message
    text = getattr(message, "content", None) or ""
    raw_call = getattr(message, "function_call", None)
    tool_call = None
    if raw_call is not None:
        tool_call = ToolCall(
            id=new_call_id(),
            function=FunctionCall(
                name=raw_call.name, arguments=raw_call.arguments or ""
            ),
        )
    logger.debug("completion received: %r", text)
    usage = usage_from_openai(getattr(response, "usage", None))
    return classify(text, tool_call, usage)
