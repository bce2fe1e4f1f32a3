"""Event sinks for streamed completions.

A streaming completion pushes every text fragment to the sink in
``RequestOptions.events`` under the ``"data"`` topic, in arrival order and
exactly once. ``"end"`` follows once per call, when the call returns or
raises, so a consumer never waits on a failed call.
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

DATA = "data"
END = "end"


@runtime_checkable
class EventSink(Protocol):
    """Anything that accepts ``(topic, payload)`` stream events."""

    def emit(self, topic: str, payload: str) -> None:
        """Receive one event."""
        ...


class StreamChannel:
    """Queue-backed sink that callers consume with ``async for``.

    Example:
        channel = StreamChannel()
        task = asyncio.create_task(
            api.chat_completion(messages, RequestOptions(events=channel))
        )
        async for chunk in channel:
            print(chunk, end="")
        response = await task

    Iteration stops at the ``"end"`` event, so one ``async for`` consumes one
    completion. The event is sent even when the call fails; the error then
    surfaces from ``await task``. Reuse the channel for the next turn of the
    conversation.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[str, str]] = asyncio.Queue()

    def emit(self, topic: str, payload: str) -> None:
        self._queue.put_nowait((topic, payload))

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iter_data()

    async def _iter_data(self) -> AsyncIterator[str]:
        while True:
            topic, payload = await self._queue.get()
            if topic == END:
                return
            if topic == DATA:
                yield payload


def emit_data(sink: EventSink | None, payload: str) -> None:
    """Emit a text fragment when a sink is configured."""
    if sink is not None and payload:
        sink.emit(DATA, payload)


def emit_end(sink: EventSink | None) -> None:
    """Mark the end of one streamed response."""
    if sink is not None:
        sink.emit(END, "")


@contextmanager
def end_of_stream(sink: EventSink | None, *, streaming: bool) -> Iterator[None]:
    """Emit ``"end"`` when the block exits, whether it returns or raises."""
    try:
        yield
    finally:
        if streaming:
            emit_end(sink)
