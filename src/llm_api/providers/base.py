"""Chat API protocol: the contract every provider implements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.config import ModelConfig, RequestOptions
    from llm_api.types import ChatResponse, Message, ModelFunction


@runtime_checkable
class ChatApi(Protocol):
    """Uniform completion interface over one provider.

    Implementations hold only immutable configuration, so concurrent calls on
    one instance are independent.
    """

    model_config: ModelConfig

    async def chat_completion(
        self,
        messages: Sequence[Message],
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        """Complete a conversation.

        Raises:
            TokenError: The prompt leaves no room for the minimum response.
            ProtocolError: A message role is unsupported by the provider.
            MalformedResponseError: The provider answered with nothing usable.
            APIError: The provider failed and retries were exhausted.
        """
        ...

    async def text_completion(
        self,
        prompt: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        """Complete a single user prompt."""
        ...

    def get_tokens_from_prompt(
        self,
        texts: Sequence[str],
        functions: Sequence[ModelFunction | dict[str, Any]] | None = None,
    ) -> int:
        """Estimate prompt tokens without sending a request."""
        ...
