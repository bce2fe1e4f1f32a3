"""Anthropic provider on the legacy text completions API.

The conversation is rendered into one ``Human:``/``Assistant:`` prompt string;
the model continues the final, open assistant turn.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from llm_api.aggregation import classify, finalize_text
from llm_api.budget import check_token_budget, max_response_tokens
from llm_api.config import AnthropicConfig, ModelConfig, RequestOptions
from llm_api.constants import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_INTERVAL_S,
    DEFAULT_TIMEOUT_S,
    MAXIMUM_RESPONSE_TOKENS,
    MINIMUM_RESPONSE_TOKENS,
)
from llm_api.envelope import build_response
from llm_api.errors import APIError, LLMApiError
from llm_api.events import emit_data, end_of_stream
from llm_api.prompts import build_legacy_prompt, with_system_message
from llm_api.providers._errors import wrap_provider_error
from llm_api.providers._utils import log_request, stop_sequences
from llm_api.retry import retry_with_backoff
from llm_api.tokens import count_tokens
from llm_api.types import Message

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.events import EventSink
    from llm_api.types import ChatResponse, Completion, ModelFunction

logger = logging.getLogger(__name__)

# Anthropic requires max_tokens_to_sample, so a maximum is always set.
ANTHROPIC_REQUEST_DEFAULTS: dict[str, Any] = {
    "retries": DEFAULT_RETRIES,
    "retry_interval": DEFAULT_RETRY_INTERVAL_S,
    "timeout": DEFAULT_TIMEOUT_S,
    "minimum_response_tokens": MINIMUM_RESPONSE_TOKENS,
    "maximum_response_tokens": MAXIMUM_RESPONSE_TOKENS,
}


def prepare_legacy_prompt(
    provider: str,
    messages: Sequence[Message],
    model_config: ModelConfig,
    options: RequestOptions,
) -> tuple[str, int]:
    """Render, log and budget-check the prompt for Anthropic text completion.

    Returns the prompt and its response token cap.
    """
    if options.functions:
        logger.warning("%s models do not support functions; ignoring them", provider)
    prompt = build_legacy_prompt(
        with_system_message(messages, options), options.response_prefix
    )
    log_request(provider, prompt, model_config, options)

    prompt_tokens = check_token_budget(model_config, options, [prompt])
    max_tokens = max_response_tokens(model_config, options, prompt_tokens)
    return prompt, max_tokens if max_tokens is not None else MAXIMUM_RESPONSE_TOKENS


class AnthropicChatApi:
    """Anthropic text completions behind the chat interface."""

    provider_name = "anthropic"

    def __init__(
        self,
        config: AnthropicConfig | None = None,
        model_config: ModelConfig | None = None,
    ) -> None:
        self.config = config if config is not None else AnthropicConfig()
        self.model_config = model_config if model_config is not None else ModelConfig()
        self._client: Any = None

    def _get_client(self) -> Any:
        """Lazily initialize and return the Anthropic client."""
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError as e:
                raise APIError(
                    "anthropic package not installed",
                    hint="pip install anthropic",
                ) from e
            kwargs: dict[str, Any] = {"api_key": self.config.api_key, "max_retries": 0}
            if self.config.base_url:
                kwargs["base_url"] = self.config.base_url
            self._client = AsyncAnthropic(**kwargs)
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
        """Complete a conversation with text.

        Turn markers are stripped from message content, so user text cannot
        open a fake turn.
        """
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
            "Anthropic", messages, self.model_config, options
        )

        body: dict[str, Any] = {
            "model": self.model_config.model or DEFAULT_ANTHROPIC_MODEL,
            "prompt": prompt,
            "max_tokens_to_sample": max_tokens,
        }
        if self.model_config.temperature is not None:
            body["temperature"] = self.model_config.temperature
        if self.model_config.top_p is not None:
            body["top_p"] = self.model_config.top_p
        stop = stop_sequences(self.model_config, options)
        if stop:
            body["stop_sequences"] = stop
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
        try:
            if self.model_config.stream:
                text = await self._read_stream(client, body, options)
            else:
                response = await client.completions.create(**body)
                text = getattr(response, "completion", None) or ""
                logger.debug("completion received: %r", text)
        except asyncio.CancelledError:
            raise
        except LLMApiError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e,
                provider=self.provider_name,
                message="Anthropic completion failed",
            ) from e
        return classify(finalize_text(text, options.response_prefix, trim=True), None)

    async def _read_stream(
        self, client: Any, body: dict[str, Any], options: RequestOptions
    ) -> str:
        events: EventSink | None = options.events
        stream = await client.completions.create(**body, stream=True)

        # The prefix counts as part of the response.
        if options.response_prefix:
            emit_data(events, options.response_prefix)

        parts: list[str] = []
        async for chunk in stream:
            text = getattr(chunk, "completion", None)
            if text:
                logger.debug("stream fragment: %r", text)
                parts.append(text)
                emit_data(events, text)

        logger.debug("stream response end")
        return "".join(parts)
