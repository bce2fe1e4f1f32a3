"""Mock chat API for testing code that drives a provider."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from llm_api.config import ModelConfig
from llm_api.envelope import build_response
from llm_api.errors import LLMApiError
from llm_api.types import (
    Completion,
    FunctionCall,
    Message,
    TextResult,
    ToolCall,
    ToolCallResult,
    Usage,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from llm_api.config import RequestOptions
    from llm_api.types import ChatResponse, ModelFunction

MOCK_USAGE = Usage(prompt_tokens=10, completion_tokens=20, total_tokens=30)
CHAT_REPLY = "Test Content, this is a chat completion"
TEXT_REPLY = "Test Content, this is a text completion"


@dataclass
class MockChatApi:
    """Stand-in for a live ``ChatApi`` that records every call.

    Inject it where a provider is expected, run the code under test, then
    compare the recorded arguments with ``set_expected_args`` and
    ``validate_args``. Replies come from ``script`` in order (a string for
    text, a ``ToolCall`` for a function call); once it is exhausted a fixed
    reply is returned.
    """

    model_config: ModelConfig = field(
        default_factory=lambda: ModelConfig(model="default")
    )
    script: deque[str | ToolCall] = field(default_factory=deque)
    chat_args: list[dict[str, Any]] = field(default_factory=list)
    text_args: list[dict[str, Any]] = field(default_factory=list)
    token_args: list[dict[str, Any]] = field(default_factory=list)
    expected_args: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def add_reply(self, reply: str | ToolCall) -> None:
        """Queue the next scripted reply."""
        self.script.append(reply)

    def add_tool_call(
        self, name: str, arguments: str = "{}", call_id: str = "call_mock"
    ) -> None:
        """Queue a scripted function call."""
        self.add_reply(
            ToolCall(id=call_id, function=FunctionCall(name=name, arguments=arguments))
        )

    def set_expected_args(self, **expected: list[dict[str, Any]]) -> None:
        """Set expected recordings, keyed by recording attribute name."""
        unknown = set(expected) - {"chat_args", "text_args", "token_args"}
        if unknown:
            raise ValueError(f"Unknown recordings: {sorted(unknown)}")
        self.expected_args = expected

    def validate_args(self) -> None:
        """Raise AssertionError when a recording differs from its expectation."""
        for name, expected in self.expected_args.items():
            actual = getattr(self, name)
            if actual != expected:
                raise AssertionError(
                    f"{name} mismatch: expected {expected!r}, got {actual!r}"
                )

    def get_tokens_from_prompt(
        self,
        texts: Sequence[str],
        functions: Sequence[ModelFunction | dict[str, Any]] | None = None,
    ) -> int:
        self.token_args.append({"texts": list(texts), "functions": functions})
        return -1

    async def chat_completion(
        self,
        messages: Sequence[Message],
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        self.chat_args.append({"messages": list(messages), "options": options})
        return build_response(
            self._next_completion(CHAT_REPLY), messages, options, self.chat_completion
        )

    async def text_completion(
        self,
        prompt: str,
        options: RequestOptions | None = None,
    ) -> ChatResponse:
        self.text_args.append({"prompt": prompt, "options": options})
        return build_response(
            self._next_completion(TEXT_REPLY),
            [Message.user(prompt)],
            options,
            self.chat_completion,
        )

    def _next_completion(self, default: str) -> Completion:
        reply = self.script.popleft() if self.script else default
        if isinstance(reply, ToolCall):
            return Completion(ToolCallResult(reply), MOCK_USAGE)
        if not reply:
            raise LLMApiError("Scripted reply must not be empty")
        return Completion(TextResult(reply), MOCK_USAGE)
