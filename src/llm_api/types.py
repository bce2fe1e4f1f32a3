"""Provider-agnostic chat types.

These are the shapes callers build requests from and receive results in. They
never carry provider wire details; each provider maps them to its own format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal, Protocol

if TYPE_CHECKING:
    from llm_api.config import RequestOptions

Role = Literal["system", "user", "assistant", "tool"]

JsonValue = Any


@dataclass(frozen=True)
class FunctionCall:
    """Name and raw JSON arguments of a requested function call."""

    name: str
    #: Raw JSON text as produced by the model; may be malformed.
    arguments: str


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model."""

    id: str
    function: FunctionCall
    type: Literal["function"] = "function"

    def to_dict(self) -> dict[str, Any]:
        """Return the OpenAI-style wire representation."""
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }


@dataclass(frozen=True)
class Message:
    """A single conversational turn."""

    role: Role
    content: str | None = None
    #: Only meaningful on ``assistant`` messages.
    tool_call: ToolCall | None = None
    #: Only meaningful on ``tool`` messages; references ``ToolCall.id``.
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls, content: str | None = None, *, tool_call: ToolCall | None = None
    ) -> Message:
        return cls(role="assistant", content=content, tool_call=tool_call)

    @classmethod
    def tool(cls, content: str, *, tool_call_id: str) -> Message:
        return cls(role="tool", content=content, tool_call_id=tool_call_id)


@dataclass(frozen=True)
class ModelFunction:
    """A function the model may call, described by a JSON schema."""

    name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "parameters": self.parameters}
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class Usage:
    """Token usage reported by the provider."""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class TextResult:
    """Completion that answered with text."""

    text: str


@dataclass(frozen=True)
class ToolCallResult:
    """Completion that answered with a function call."""

    tool_call: ToolCall


CompletionResult = TextResult | ToolCallResult


@dataclass(frozen=True)
class Completion:
    """A classified provider answer plus usage, before envelope building."""

    result: CompletionResult
    usage: Usage | None = None


class Respond(Protocol):
    """Continuation that sends one more message in the same chat."""

    async def __call__(
        self,
        message: str | Message,
        options: RequestOptions | None = None,
    ) -> ChatResponse: ...


@dataclass(frozen=True)
class ChatResponse:
    """Uniform result of a chat or text completion.

    Exactly one of ``content`` or ``name``/``arguments`` is set, depending on
    whether the model answered with text or with a function call.
    """

    #: The raw assistant turn, ready to be appended to a history.
    message: Message
    #: Sends a follow-up message reusing this chat's history and options.
    respond: Respond
    content: str | None = None
    tool_call_id: str | None = None
    name: str | None = None
    arguments: JsonValue = None
    usage: Usage | None = None

    @property
    def is_tool_call(self) -> bool:
        """Whether the model asked for a function call instead of text."""
        return self.message.tool_call is not None
