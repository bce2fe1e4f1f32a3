"""Test helpers: fake SDK clients and response builders.

Providers call their SDK client through ``provider._client``; these doubles
stand in for it, record request kwargs, and answer from a script. A script
item that is an exception is raised instead of returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import io
import json
from types import SimpleNamespace
from typing import Any

# =============================================================================
# OpenAI-compatible chunks and responses (OpenAI, Azure, Groq)
# =============================================================================


def chat_response(
    content: str | None = None,
    *,
    tool_calls: list[Any] | None = None,
    function_call: Any = None,
    usage: tuple[int, int] | None = None,
) -> SimpleNamespace:
    """Build a non-streamed chat completion."""
    message = SimpleNamespace(
        content=content, tool_calls=tool_calls, function_call=function_call
    )
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message)],
        usage=_usage(usage),
        error=None,
    )


def tool_call(name: str, arguments: str, call_id: str | None = "call_1") -> Any:
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def text_chunk(text: str) -> SimpleNamespace:
    delta = SimpleNamespace(content=text, tool_calls=None, function_call=None)
    return _chunk(delta)


def tool_chunk(
    *,
    index: int = 0,
    call_id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> SimpleNamespace:
    fragment = SimpleNamespace(
        index=index,
        id=call_id,
        function=SimpleNamespace(name=name, arguments=arguments),
    )
    delta = SimpleNamespace(content=None, tool_calls=[fragment], function_call=None)
    return _chunk(delta)


def function_chunk(
    *, name: str | None = None, arguments: str | None = None
) -> SimpleNamespace:
    call = SimpleNamespace(name=name, arguments=arguments)
    delta = SimpleNamespace(content=None, tool_calls=None, function_call=call)
    return _chunk(delta)


def usage_chunk(prompt: int, completion: int) -> SimpleNamespace:
    return SimpleNamespace(choices=[], usage=_usage((prompt, completion)))


def _chunk(delta: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta)], usage=None)


def _usage(usage: tuple[int, int] | None) -> SimpleNamespace | None:
    if usage is None:
        return None
    prompt, completion = usage
    return SimpleNamespace(
        prompt_tokens=prompt,
        completion_tokens=completion,
        total_tokens=prompt + completion,
    )


class FakeStream:
    """Async iterator over prepared chunks."""

    def __init__(self, chunks: list[Any]) -> None:
        self._chunks = list(chunks)

    def __aiter__(self) -> FakeStream:
        return self

    async def __anext__(self) -> Any:
        if not self._chunks:
            raise StopAsyncIteration
        item = self._chunks.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@dataclass
class FakeCompletions:
    """Scripted ``create`` endpoint that records every call's kwargs.

    A list item in the script is treated as stream chunks.
    """

    script: list[Any] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)

    async def create(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, list):
            return FakeStream(item)
        return item

    @property
    def last_kwargs(self) -> dict[str, Any]:
        return self.calls[-1]


def fake_chat_client(*script: Any) -> tuple[Any, FakeCompletions]:
    """Client shaped like ``AsyncOpenAI`` and ``AsyncGroq``."""
    completions = FakeCompletions(list(script))
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return client, completions


def fake_anthropic_client(*script: Any) -> tuple[Any, FakeCompletions]:
    """Client shaped like ``AsyncAnthropic``: ``client.completions``."""
    completions = FakeCompletions(list(script))
    return SimpleNamespace(completions=completions), completions


def anthropic_response(text: str) -> SimpleNamespace:
    return SimpleNamespace(completion=text, stop_reason="stop_sequence")


def anthropic_chunk(text: str) -> SimpleNamespace:
    return SimpleNamespace(completion=text)


# =============================================================================
# SDK-style errors
# =============================================================================


class FakeStatusError(Exception):
    """Mimics SDK status errors that carry ``status_code`` and a response."""

    def __init__(
        self,
        status_code: int,
        message: str = "error",
        retry_after: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        headers = {"Retry-After": retry_after} if retry_after is not None else {}
        self.response = SimpleNamespace(status_code=status_code, headers=headers)


class FakeClientError(Exception):
    """Mimics ``botocore.exceptions.ClientError``."""

    def __init__(self, code: str, status_code: int | None = None) -> None:
        super().__init__(f"An error occurred ({code})")
        metadata = {"HTTPStatusCode": status_code} if status_code else {}
        self.response = {"Error": {"Code": code}, "ResponseMetadata": metadata}


# =============================================================================
# Bedrock
# =============================================================================


def bedrock_chunk(
    text: str, metrics: dict[str, int] | None = None
) -> dict[str, Any]:
    data: dict[str, Any] = {"completion": text}
    if metrics is not None:
        data["amazon-bedrock-invocationMetrics"] = metrics
    return {"chunk": {"bytes": json.dumps(data).encode()}}


@dataclass
class FakeBedrockClient:
    """Synchronous ``bedrock-runtime`` double."""

    script: list[Any] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)

    def _next(self, kwargs: dict[str, Any]) -> Any:
        self.calls.append(kwargs)
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def invoke_model(self, **kwargs: Any) -> dict[str, Any]:
        item = self._next(kwargs)
        if isinstance(item, dict) and "body" in item:
            return item
        body = io.BytesIO(json.dumps(item).encode())
        return {"body": body, "ResponseMetadata": {}}

    def invoke_model_with_response_stream(self, **kwargs: Any) -> dict[str, Any]:
        return {"body": iter(self._next(kwargs))}

    @property
    def last_body(self) -> dict[str, Any]:
        return json.loads(self.calls[-1]["body"])
