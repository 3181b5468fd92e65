"""Tests for core/aggregator.py."""

import asyncio as _asyncio
import typing as _typing

import pytest as _pytest

import skald.api.events as events
import skald.api.types as api_types
import skald.core.aggregator as aggregator
import skald.errors as errors


def _text_delta(index: int, text: str) -> events.ContentBlockDelta:
    return events.ContentBlockDelta(index=index, delta=events.TextDelta(text=text))


def _json_delta(index: int, fragment: str) -> events.ContentBlockDelta:
    return events.ContentBlockDelta(index=index, delta=events.InputJsonDelta(partial_json=fragment))


def _tool_start(index: int, tool_id: str = "t1", name: str = "echo") -> events.ContentBlockStart:
    return events.ContentBlockStart(index=index, block=events.ToolUseStart(id=tool_id, name=name))


def _aggregate(event_list: list[events.ProtocolEvent]) -> api_types.ModelResponse:
    agg = aggregator.StreamAggregator()
    for event in event_list:
        if agg.feed(event):
            break
    return agg.finish()


class TestStreamAggregator:
    """Tests for StreamAggregator."""

    def test_simple_text_response(self) -> None:
        response = _aggregate(
            [
                events.MessageStart(id="X", model="M"),
                events.ContentBlockStart(index=0, block=events.TextStart(text="")),
                _text_delta(0, "Hi"),
                _text_delta(0, " there"),
                events.ContentBlockStop(index=0),
                events.MessageDelta(stop_reason=api_types.StopReason.END_TURN),
                events.MessageStop(),
            ]
        )
        assert response.id == "X"
        assert response.model == "M"
        assert response.role is api_types.Role.ASSISTANT
        assert response.content == [api_types.TextBlock(text="Hi there")]
        assert response.stop_reason is api_types.StopReason.END_TURN

    def test_tool_input_assembled_from_fragments(self) -> None:
        response = _aggregate(
            [
                events.MessageStart(id="X", model="M"),
                _tool_start(0),
                _json_delta(0, '{"a":1'),
                _json_delta(0, ',"b":2'),
                _json_delta(0, "}"),
                events.ContentBlockStop(index=0),
                events.MessageDelta(stop_reason=api_types.StopReason.TOOL_USE),
                events.MessageStop(),
            ]
        )
        assert response.content == [api_types.ToolUseBlock(id="t1", name="echo", input={"a": 1, "b": 2})]
        assert response.has_tool_use

    def test_interleaved_blocks_ordered_by_index(self) -> None:
        response = _aggregate(
            [
                events.MessageStart(id="X", model="M"),
                _tool_start(2, tool_id="t2"),
                events.ContentBlockStart(index=0, block=events.TextStart()),
                _tool_start(1, tool_id="t1"),
                _json_delta(2, '{"n": '),
                _text_delta(0, "a"),
                _json_delta(1, '{"n": 1}'),
                _json_delta(2, "2}"),
                _text_delta(0, "b"),
                events.ContentBlockStop(index=1),
                events.ContentBlockStop(index=2),
                events.ContentBlockStop(index=0),
                events.MessageStop(),
            ]
        )
        assert response.content == [
            api_types.TextBlock(text="ab"),
            api_types.ToolUseBlock(id="t1", name="echo", input={"n": 1}),
            api_types.ToolUseBlock(id="t2", name="echo", input={"n": 2}),
        ]

    def test_sparse_indices_keep_order(self) -> None:
        response = _aggregate(
            [
                events.ContentBlockStart(index=7, block=events.TextStart(text="late")),
                events.ContentBlockStart(index=3, block=events.TextStart(text="early")),
                events.ContentBlockStop(index=7),
                events.ContentBlockStop(index=3),
                events.MessageStop(),
            ]
        )
        assert [block.text for block in response.content] == ["early", "late"]

    def test_invalid_json_fails(self) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(_tool_start(0))
        agg.feed(_json_delta(0, '{"a":'))
        with _pytest.raises(errors.ToolInputParseError) as exc_info:
            agg.feed(events.ContentBlockStop(index=0))
        assert exc_info.value.index == 0
        assert exc_info.value.raw == '{"a":'
        assert isinstance(exc_info.value, errors.ProtocolError)

    @_pytest.mark.parametrize("raw", ["", "  "])
    def test_blank_json_buffer_fails(self, raw: str) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(
            events.ContentBlockStart(
                index=0, block=events.ToolUseStart(id="t1", name="echo", input={"x": 1})
            )
        )
        agg.feed(_json_delta(0, raw))
        with _pytest.raises(errors.ToolInputParseError) as exc_info:
            agg.feed(events.ContentBlockStop(index=0))
        assert exc_info.value.raw == raw

    def test_start_without_deltas_emits_start_payload(self) -> None:
        response = _aggregate(
            [
                events.ContentBlockStart(index=0, block=events.TextStart(text="Hello")),
                events.ContentBlockStop(index=0),
                _tool_start(1),
                events.ContentBlockStop(index=1),
                events.MessageStop(),
            ]
        )
        assert response.content == [
            api_types.TextBlock(text="Hello"),
            api_types.ToolUseBlock(id="t1", name="echo", input={}),
        ]

    def test_text_delta_without_start_creates_block(self) -> None:
        response = _aggregate([_text_delta(0, "orphan"), events.MessageStop()])
        assert response.content == [api_types.TextBlock(text="orphan")]

    def test_zero_blocks(self) -> None:
        response = _aggregate(
            [
                events.MessageStart(id="X", model="M"),
                events.MessageDelta(stop_reason=api_types.StopReason.END_TURN),
                events.MessageStop(),
            ]
        )
        assert response.content == []

    def test_thinking_excluded(self) -> None:
        response = _aggregate(
            [
                events.ContentBlockStart(index=0, block=events.ThinkingStart()),
                events.ContentBlockDelta(index=0, delta=events.ThinkingDelta(thinking="let me see")),
                events.ContentBlockDelta(index=0, delta=events.SignatureDelta(signature="sig")),
                events.ContentBlockStop(index=0),
                events.ContentBlockStart(index=1, block=events.TextStart()),
                _text_delta(1, "answer"),
                events.ContentBlockStop(index=1),
                events.MessageStop(),
            ]
        )
        assert response.content == [api_types.TextBlock(text="answer")]

    def test_text_delta_into_tool_block_rejected(self) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(_tool_start(0))
        with _pytest.raises(errors.ProtocolError, match="non-text block"):
            agg.feed(_text_delta(0, "oops"))

    def test_json_for_text_block_rejected(self) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(events.ContentBlockStart(index=0, block=events.TextStart()))
        agg.feed(_json_delta(0, "{}"))
        with _pytest.raises(errors.ProtocolError, match="non-tool block"):
            agg.feed(events.ContentBlockStop(index=0))

    def test_unclosed_json_at_message_stop_rejected(self) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(_tool_start(0))
        agg.feed(_json_delta(0, "{}"))
        with _pytest.raises(errors.ProtocolError, match="unclosed tool input"):
            agg.feed(events.MessageStop())

    def test_duplicate_start_rejected(self) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(events.ContentBlockStart(index=0, block=events.TextStart()))
        with _pytest.raises(errors.ProtocolError, match="Duplicate"):
            agg.feed(events.ContentBlockStart(index=0, block=events.TextStart()))

    def test_message_delta_last_write_wins(self) -> None:
        response = _aggregate(
            [
                events.MessageStart(id="X", model="M", usage=api_types.Usage(input_tokens=10)),
                events.MessageDelta(stop_reason=api_types.StopReason.TOOL_USE),
                events.MessageDelta(
                    stop_reason=api_types.StopReason.STOP_SEQUENCE,
                    stop_sequence="###",
                    usage=api_types.Usage(input_tokens=10, output_tokens=4),
                ),
                events.MessageStop(),
            ]
        )
        assert response.stop_reason is api_types.StopReason.STOP_SEQUENCE
        assert response.stop_sequence == "###"
        assert response.usage.output_tokens == 4

    def test_ping_ignored(self) -> None:
        response = _aggregate([events.Ping(), events.MessageStop()])
        assert response.content == []

    def test_stream_error_aborts(self) -> None:
        agg = aggregator.StreamAggregator()
        with _pytest.raises(errors.StreamAbortedError) as exc_info:
            agg.feed(events.StreamError(error_type="overloaded_error", message="busy"))
        assert exc_info.value.error_type == "overloaded_error"
        assert exc_info.value.to_dict()["kind"] == "stream_error"

    def test_finish_without_message_stop(self) -> None:
        agg = aggregator.StreamAggregator()
        agg.feed(events.MessageStart(id="X", model="M"))
        with _pytest.raises(errors.IncompleteStreamError):
            agg.finish()

    def test_event_after_message_stop_rejected(self) -> None:
        agg = aggregator.StreamAggregator()
        assert agg.feed(events.MessageStop()) is True
        with _pytest.raises(errors.ProtocolError, match="after message_stop"):
            agg.feed(events.Ping())

    def test_non_event_rejected(self) -> None:
        agg = aggregator.StreamAggregator()
        with _pytest.raises(errors.ProtocolError, match="Not a protocol event"):
            agg.feed("message_stop")  # type: ignore[arg-type]


class _ClosingSource:
    """Async iterator that records whether it was closed."""

    def __init__(self, event_list: list[events.ProtocolEvent], hang: bool = False) -> None:
        self._events = list(event_list)
        self._hang = hang
        self.closed = False
        self.consumed = 0

    def __aiter__(self) -> "_ClosingSource":
        return self

    async def __anext__(self) -> events.ProtocolEvent:
        if not self._events:
            if self._hang:
                await _asyncio.Event().wait()
            raise StopAsyncIteration
        self.consumed += 1
        return self._events.pop(0)

    async def aclose(self) -> None:
        self.closed = True


class TestAggregateStream:
    """Tests for aggregate_stream()."""

    @_pytest.mark.asyncio
    async def test_async_source(self, event_script, recording_callbacks) -> None:
        source = _ClosingSource(event_script.text_turn("Hello world"))
        response = await aggregator.aggregate_stream(source, recording_callbacks)

        assert response.content == [api_types.TextBlock(text="Hello world")]
        assert source.closed
        assert "".join(recording_callbacks.text) == "Hello world"
        assert recording_callbacks.stream_starts == 1
        assert recording_callbacks.responses == [response]
        assert len(recording_callbacks.events) == 7

    @_pytest.mark.asyncio
    async def test_sync_source(self, event_script) -> None:
        response = await aggregator.aggregate_stream(event_script.text_turn("sync"))
        assert response.content == [api_types.TextBlock(text="sync")]

    @_pytest.mark.asyncio
    async def test_sync_generator_closed(self, event_script) -> None:
        closed: list[bool] = []

        def generate() -> _typing.Iterator[events.ProtocolEvent]:
            try:
                yield from event_script.text_turn("gen")
                yield events.Ping()
            finally:
                closed.append(True)

        response = await aggregator.aggregate_stream(generate())
        assert response.content == [api_types.TextBlock(text="gen")]
        assert closed == [True]

    @_pytest.mark.asyncio
    async def test_stops_at_message_stop(self, event_script) -> None:
        trailing = event_script.text_turn("done") + [events.Ping(), events.Ping()]
        source = _ClosingSource(trailing)
        await aggregator.aggregate_stream(source)
        assert source.consumed == 7
        assert source.closed

    @_pytest.mark.asyncio
    async def test_missing_message_stop(self, event_script) -> None:
        source = _ClosingSource(event_script.text_turn("cut off")[:-1])
        with _pytest.raises(errors.IncompleteStreamError, match="without message_stop"):
            await aggregator.aggregate_stream(source)
        assert source.closed

    @_pytest.mark.asyncio
    async def test_source_closed_on_error(self) -> None:
        source = _ClosingSource(
            [
                events.MessageStart(id="X", model="M"),
                events.StreamError(error_type="api_error", message="boom"),
                events.MessageStop(),
            ]
        )
        with _pytest.raises(errors.StreamAbortedError):
            await aggregator.aggregate_stream(source)
        assert source.closed

    @_pytest.mark.asyncio
    async def test_source_closed_on_cancel(self) -> None:
        source = _ClosingSource([events.MessageStart(id="X", model="M")], hang=True)
        task = _asyncio.ensure_future(aggregator.aggregate_stream(source))
        while source.consumed == 0:
            await _asyncio.sleep(0)
        task.cancel()
        with _pytest.raises(_asyncio.CancelledError):
            await task
        assert source.closed
