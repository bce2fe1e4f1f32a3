"""Groq chat completions provider."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from llm_api.aggregation import classify, finalize_text
from llm_api.budget import check_token_budget, max_response_tokens
from llm_api.config import GroqConfig, ModelConfig, RequestOptions
from llm_api.constants import (
    DEFAULT_GROQ_MODEL,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_INTERVAL_S,
    DEFAULT_TIMEOUT_S,
    MAXIMUM_RESPONSE_TOKENS,
    MINIMUM_RESPONSE_TOKENS,
)
from llm_api.envelope import build_response
from llm_api.errors import APIError, LLMApiError, MalformedResponseError
from llm_api.events import emit_data, end_of_stream
from llm_api.prompts import check_roles, with_system_message
from llm_api.providers._errors import wrap_provider_error
from llm_api.providers._utils import log_request, stop_sequences, usage_from_openai
from llm_api.retry import retry_with_backoff
from llm_api.tokens import count_tokens
from llm_api.types import Message

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.events import EventSink
    from llm_api.types import ChatResponse, Completion, ModelFunction, Usage

logger = logging.getLogger(__name__)

_REQUEST_DEFAULTS: dict[str, Any] = {
    "retries": DEFAULT_RETRIES,
    "retry_interval": DEFAULT_RETRY_INTERVAL_S,
    "timeout": DEFAULT_TIMEOUT_S,
    "minimum_response_tokens": MINIMUM_RESPONSE_TOKENS,
    "maximum_response_tokens": MAXIMUM_RESPONSE_TOKENS,
}
_SUPPORTED_ROLES = ("system", "user", "assistant", "tool")


def groq_messages(
    messages: Sequence[Message], options: RequestOptions
) -> list[Message]:
    """Normalize a conversation for Groq.

    Tool results become user turns, empty turns are dropped, and a response
    prefix is sent as a trailing assistant turn for the model to continue.
    """
    prepared = with_system_message(messages, options)
    check_roles(prepared, _SUPPORTED_ROLES, "Groq")
    normalized = [
        Message(role="user" if m.role == "tool" else m.role, content=m.content)
        for m in prepared
        if m.content
    ]
    if options.response_prefix:
        normalized.append(Message.assistant(options.response_prefix))
    return normalized


class GroqChatApi:
    """Groq chat completions (text only)."""

    provider_name = "groq"

    def __init__(
        self,
        config: GroqConfig | None = None,
        model_config: ModelConfig | None = None,
    ) -> None:
        self.config = config if config is not None else GroqConfig()
        self.model_config = model_config if model_config is not None else ModelConfig()
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the Groq client."""
        if self._client is None:
            try:
                from groq import AsyncGroq
            except ImportError as e:
                raise APIError(
                    "groq package not installed",
                    hint="pip install groq",
                ) from e
            kwargs: dict[str, Any] = {"api_key": self.config.api_key, "max_retries": 0}
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._client = AsyncGroq(**kwargs)
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
            **_REQUEST_DEFAULTS
        )
        with end_of_stream(final_options.events, streaming=self.model_config.stream):
            completion = await self._complete(messages, final_options)
        return build_response(completion, messages, options, self.chat_completion)

    async def _complete(
        self, messages: Sequence[Message], options: RequestOptions
    ) -> Completion:
        if options.functions:
            logger.warning("Groq models do not support functions; ignoring them")

        prepared = groq_messages(messages, options)
        log_request(self.provider_name, prepared, self.model_config, options)
        prompt_tokens = check_token_budget(
            self.model_config, options, [m.content or "" for m in prepared]
        )

        body: dict[str, Any] = {
            "model": self.model_config.model or DEFAULT_GROQ_MODEL,
            "messages": [{"role": m.role, "content": m.content} for m in prepared],
        }
        max_tokens = max_response_tokens(self.model_config, options, prompt_tokens)
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if self.model_config.temperature is not None:
            body["temperature"] = self.model_config.temperature
        if self.model_config.top_p is not None:
            body["top_p"] = self.model_config.top_p
        stop = stop_sequences(self.model_config, options)
        if stop:
            body["stop"] = stop
        return await retry_with_backoff(lambda opts: self._attempt(body, opts), options)

    async def text_completion(
        self,
        prompt: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        return await self.chat_completion([Message.user(prompt)], options)

    async def _attempt(
        self, body: dict[str, Any], options: RequestOptions
    ) -> Completion:
        client = self._get_client()
        usage: Usage | None
        try:
            if self.model_config.stream:
                text, usage = await self._read_stream(client, body, options)
            else:
                response = await client.chat.completions.create(**body, stream=False)
                choices = getattr(response, "choices", None)
                if not choices:
                    raise MalformedResponseError(
                        "Completion response malformed: no choices"
                    )
                text = choices[0].message.content or ""
                usage = usage_from_openai(getattr(response, "usage", None))
                logger.debug("completion received: %r", text)
        except asyncio.CancelledError:
            raise
        except LLMApiError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider=self.provider_name,
                message="Groq completion failed",
            ) from e
        return classify(
            finalize_text(text, options.response_prefix, trim=False), None, usage
        )

    async def _read_stream(
        self, client: Any, body: dict[str, Any], options: RequestOptions
    ) -> tuple[str, Usage | None]:
        events: EventSink | None = options.events
        stream = await client.chat.completions.create(**body, stream=True)

        # The prefix counts as part of the response.
        if options.response_prefix:
            emit_data(events, options.response_prefix)

        parts: list[str] = []
        usage = None
        async for chunk in stream:
            x_groq = getattr(chunk, "x_groq", None)
            if getattr(x_groq, "usage", None) is not None:
                usage = usage_from_openai(x_groq.usage)
            choices = getattr(chunk, "choices", None)
            if not choices:
                continue
            text = getattr(choices[0].delta, "content", None)
            if text:
                logger.debug("stream fragment: %r", text)
                parts.append(text)
                emit_data(events, text)

        logger.debug("stream response end")
        return "".join(parts), usage
