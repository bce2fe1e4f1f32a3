"""Response envelope building and the ``respond`` continuation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_api.parsing import parse_lenient_json
from llm_api.types import ChatResponse, Message, TextResult, ToolCall

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from llm_api.config import RequestOptions
    from llm_api.types import Completion

    Resend = Callable[
        [list[Message], RequestOptions | None], Awaitable[ChatResponse]
    ]


def wrap_reply(message: str | Message, pending_call: ToolCall | None) -> Message:
    """Turn a bare string reply into the message the conversation expects.

    After a tool call the next turn must be the tool result, so a string
    becomes a ``tool`` message for the pending call; otherwise it is a
    ``user`` message. ``Message`` objects pass through untouched.
    """
    if isinstance(message, Message):
        return message
    if pending_call is not None:
        return Message.tool(message, tool_call_id=pending_call.id)
    return Message.user(message)


def build_response(
    completion: Completion,
    history: Sequence[Message],
    options: RequestOptions | None,
    resend: Resend,
) -> ChatResponse:
    """Assemble the ChatResponse for *completion*.

    *history* must be the caller's original messages, before any provider
    normalization, so system and prefill artifacts are not injected twice
    when the conversation continues.
    """
    result = completion.result
    if isinstance(result, TextResult):
        received = Message.assistant(result.text)
        pending_call = None
    else:
        pending_call = result.tool_call
        # Explicit empty content: chat APIs require the property.
        received = Message.assistant("", tool_call=pending_call)

    base_history = list(history)

    async def respond(
        message: str | Message, options_override: RequestOptions | None = None
    ) -> ChatResponse:
        next_messages = [*base_history, received, wrap_reply(message, pending_call)]
        return await resend(
            next_messages,
            options_override if options_override is not None else options,
        )

    if pending_call is None:
        return ChatResponse(
            message=received,
            respond=respond,
            content=received.content,
            usage=completion.usage,
        )
    return ChatResponse(
        message=received,
        respond=respond,
        tool_call_id=pending_call.id,
        name=pending_call.function.name,
        arguments=parse_lenient_json(pending_call.function.arguments),
        usage=completion.usage,
    )
