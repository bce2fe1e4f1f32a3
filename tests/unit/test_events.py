"""Unit tests for stream event sinks."""

from __future__ import annotations

import asyncio

import pytest

from llm_api.events import (
    END,
    EventSink,
    StreamChannel,
    emit_data,
    emit_end,
    end_of_stream,
)
from tests.conftest import RecordingSink

pytestmark = pytest.mark.unit


def test_recording_sink_satisfies_protocol():
    assert isinstance(RecordingSink(), EventSink)
    assert isinstance(StreamChannel(), EventSink)


def test_emit_helpers_skip_empty_payloads_and_missing_sinks():
    sink = RecordingSink()
    emit_data(sink, "")
    emit_data(sink, "a")
    emit_end(sink)
    emit_data(None, "ignored")
    emit_end(None)

    assert sink.events == [("data", "a"), (END, "")]


@pytest.mark.asyncio
async def test_stream_channel_yields_data_until_end():
    channel = StreamChannel()

    async def produce() -> None:
        for part in ("Hel", "lo"):
            emit_data(channel, part)
            await asyncio.sleep(0)
        emit_end(channel)

    task = asyncio.create_task(produce())
    received = [chunk async for chunk in channel]
    await task

    assert received == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_stream_channel_is_reusable_across_responses():
    channel = StreamChannel()
    emit_data(channel, "first")
    emit_end(channel)
    emit_data(channel, "second")
    emit_end(channel)

    assert [c async for c in channel] == ["first"]
    assert [c async for c in channel] == ["second"]


def test_end_of_stream_ends_after_a_failed_block():
    sink = RecordingSink()

    with pytest.raises(RuntimeError), end_of_stream(sink, streaming=True):
        emit_data(sink, "partial")
        raise RuntimeError("boom")

    assert sink.events == [("data", "partial"), (END, "")]


def test_end_of_stream_is_silent_when_not_streaming():
    sink = RecordingSink()

    with end_of_stream(sink, streaming=False):
        pass

    assert sink.events == []
