"""Shared prompt and message normalization.

Structured chat providers map ``Message`` objects one by one; the helpers here
cover what they share: the synthesized system message, and the single-string
prompt used by Anthropic-style text completion APIs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from llm_api.errors import ProtocolError
from llm_api.types import Message

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from llm_api.config import RequestOptions

HUMAN_PROMPT = "\n\nHuman:"
AI_PROMPT = "\n\nAssistant:"
# Bare turn markers; user content must never be able to open a new turn.
FORBIDDEN_TOKENS = (HUMAN_PROMPT.strip(), AI_PROMPT.strip())


def resolve_system_message(options: RequestOptions) -> str | None:
    """Return the system message text, evaluating a callable once."""
    system_message = options.system_message
    if system_message is None:
        return None
    if callable(system_message):
        return system_message()
    return system_message


def with_system_message(
    messages: Sequence[Message], options: RequestOptions
) -> list[Message]:
    """Prepend the configured system message, if any."""
    system_text = resolve_system_message(options)
    if system_text:
        return [Message.system(system_text), *messages]
    return list(messages)


def check_roles(
    messages: Iterable[Message], supported: Iterable[str], provider: str
) -> None:
    """Raise ProtocolError for the first message whose role has no mapping."""
    allowed = frozenset(supported)
    for message in messages:
        if message.role not in allowed:
            raise ProtocolError(
                f"{provider} models do not support messages with the role "
                f"{message.role!r}",
                hint=f"Supported roles: {', '.join(sorted(allowed))}.",
            )


def strip_forbidden_tokens(
    text: str, tokens: Sequence[str] = FORBIDDEN_TOKENS
) -> str:
    """Remove turn markers from *text* to stop injected fake turns."""
    for token in tokens:
        text = text.replace(token, "")
    return text


def build_legacy_prompt(
    messages: Sequence[Message], response_prefix: str | None = None
) -> str:
    """Concatenate messages into a Human/Assistant prompt string.

    System turns have no native marker and are folded into a human turn. The
    prompt ends with an open assistant turn, seeded with *response_prefix*.

    Raises:
        ProtocolError: For roles other than system, user and assistant.
    """
    check_roles(messages, ("system", "user", "assistant"), "Anthropic")
    turns: list[str] = []
    for message in messages:
        content = strip_forbidden_tokens(message.content or "")
        marker = AI_PROMPT if message.role == "assistant" else HUMAN_PROMPT
        turns.append(f"{marker} {content}")

    prompt = "".join(turns) + AI_PROMPT
    if response_prefix:
        prompt += f" {response_prefix}"
    return prompt
