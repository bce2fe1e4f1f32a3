"""Stream aggregation and answer classification."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from llm_api.errors import MalformedResponseError
from llm_api.types import (
    Completion,
    CompletionResult,
    FunctionCall,
    TextResult,
    ToolCall,
    ToolCallResult,
    Usage,
)

logger = logging.getLogger(__name__)


@dataclass
class ToolCallAccumulator:
    """Rebuilds one tool call from streamed fragments.

    Providers split a call's name and arguments across chunks; fragments are
    concatenated by field in arrival order. The first id seen wins.
    """

    id: str | None = None
    name_parts: list[str] = field(default_factory=list)
    argument_parts: list[str] = field(default_factory=list)

    def add(
        self,
        *,
        id: str | None = None,  # noqa: A002
        name: str | None = None,
        arguments: str | None = None,
    ) -> None:
        if id and self.id is None:
            self.id = id
        if name:
            self.name_parts.append(name)
        if arguments:
            self.argument_parts.append(arguments)

    @property
    def is_empty(self) -> bool:
        return self.id is None and not self.name_parts and not self.argument_parts

    def build(self, default_id: str) -> ToolCall | None:
        """Return the finalized call, or None when no fragment arrived."""
        if self.is_empty:
            return None
        return ToolCall(
            id=self.id or default_id,
            function=FunctionCall(
                name="".join(self.name_parts),
                arguments="".join(self.argument_parts),
            ),
        )


def classify(
    text: str | None,
    tool_call: ToolCall | None,
    usage: Usage | None = None,
) -> Completion:
    """Select exactly one answer kind; text wins when both are present.

    Raises:
        MalformedResponseError: When there is neither text nor a call.
    """
    result: CompletionResult
    if text:
        if tool_call is not None:
            logger.debug(
                "Response carried text and a call to %s; using the text",
                tool_call.function.name,
            )
        result = TextResult(text)
    elif tool_call is not None:
        result = ToolCallResult(tool_call)
    else:
        raise MalformedResponseError("Completion response malformed")
    return Completion(result=result, usage=usage)


def finalize_text(
    completion: str, response_prefix: str | None, *, trim: bool
) -> str:
    """Apply the response prefix, or trim incidental whitespace.

    A prefix is caller-authored structure and is prepended verbatim.
    """
    if response_prefix:
        return response_prefix + completion
    return completion.strip() if trim else completion
