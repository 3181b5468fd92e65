"""
Reconstruction of one model response from its stream of protocol events.

Content blocks arrive bracketed by start/stop events for their index, and
blocks of different indices may interleave. The aggregator keeps one entry
per index, buffers tool input JSON fragments until their block closes, and
emits the finished blocks ordered by index. Thinking blocks are tracked so
that their deltas are accounted for, but never surface in the response.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import json as _json
import logging as _logging
import typing as _typing

import skald.api.events as events
import skald.api.types as api_types
import skald.core.callbacks as callbacks_module
import skald.errors as errors

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass
class _TextEntry:
    parts: list[str] = _dataclasses.field(default_factory=list)

    def to_block(self) -> api_types.TextBlock:
        return api_types.TextBlock(text="".join(self.parts))


@_dataclasses.dataclass
class _ToolUseEntry:
    id: str
    name: str
    input: _typing.Any

    def to_block(self) -> api_types.ToolUseBlock:
        return api_types.ToolUseBlock(id=self.id, name=self.name, input=self.input)


@_dataclasses.dataclass
class _ThinkingEntry:
    pass


_Entry = _TextEntry | _ToolUseEntry | _ThinkingEntry


class StreamAggregator:
    """
    Folds protocol events into a single ModelResponse.

    Feed events in arrival order with feed(); once it reports the stream is
    complete, call finish() for the response. An aggregator handles exactly
    one response and is not reusable.

    Usage:
        aggregator = StreamAggregator()
        for event in events:
            if aggregator.feed(event):
                break
        response = aggregator.finish()
    """

    def __init__(self) -> None:
        self._id = ""
        self._model = ""
        self._role = api_types.Role.ASSISTANT
        self._usage = api_types.Usage()
        self._stop_reason: api_types.StopReason | None = None
        self._stop_sequence: str | None = None
        self._entries: dict[int, _Entry] = {}
        self._json_buffers: dict[int, list[str]] = {}
        self._complete = False

    @property
    def complete(self) -> bool:
        """True once MessageStop has been fed."""
        return self._complete

    def feed(self, event: events.ProtocolEvent) -> bool:
        """
        Apply one event.

        Args:
            event: The next protocol event in arrival order.

        Returns:
            True when the event was MessageStop and no more data follows.

        Raises:
            StreamAbortedError: For a StreamError event.
            ToolInputParseError: If buffered tool input JSON does not parse.
            ProtocolError: For any other malformed sequence.
        """
        if self._complete:
            raise errors.ProtocolError(f"Event after message_stop: {type(event).__name__}")

        match event:
            case events.MessageStart(id=message_id, model=model, role=role, usage=usage):
                self._id = message_id
                self._model = model
                self._role = role
                if usage is not None:
                    self._usage = usage
            case events.ContentBlockStart(index=index, block=block):
                self._start_block(index, block)
            case events.ContentBlockDelta(index=index, delta=delta):
                self._apply_delta(index, delta)
            case events.ContentBlockStop(index=index):
                self._close_block(index)
            case events.MessageDelta(stop_reason=stop_reason, stop_sequence=stop_sequence, usage=usage):
                self._stop_reason = stop_reason
                self._stop_sequence = stop_sequence
                if usage is not None:
                    self._usage = usage
            case events.MessageStop():
                if self._json_buffers:
                    open_indices = ", ".join(str(i) for i in sorted(self._json_buffers))
                    raise errors.ProtocolError(
                        f"message_stop with unclosed tool input for block(s) {open_indices}"
                    )
                self._complete = True
                return True
            case events.Ping():
                pass
            case events.StreamError(error_type=error_type, message=message):
                raise errors.StreamAbortedError(error_type, message)
            case _:
                raise errors.ProtocolError(f"Not a protocol event: {event!r}")
        return False

    def _start_block(self, index: int, block: events.BlockStart) -> None:
        if index in self._entries:
            raise errors.ProtocolError(f"Duplicate content_block_start for block {index}")
        match block:
            case events.TextStart(text=text):
                self._entries[index] = _TextEntry(parts=[text])
            case events.ToolUseStart(id=tool_id, name=name, input=tool_input):
                self._entries[index] = _ToolUseEntry(id=tool_id, name=name, input=tool_input)
            case events.ThinkingStart():
                self._entries[index] = _ThinkingEntry()
            case _:
                raise errors.ProtocolError(f"Unknown content block start: {block!r}")

    def _apply_delta(self, index: int, delta: events.Delta) -> None:
        match delta:
            case events.TextDelta(text=text):
                entry = self._entries.get(index)
                if entry is None:
                    # Text deltas without a start are tolerated
                    _logger.debug("Text delta for unopened block %d, creating it", index)
                    entry = self._entries[index] = _TextEntry()
                if not isinstance(entry, _TextEntry):
                    raise errors.ProtocolError(
                        f"Text delta for non-text block {index} ({type(entry).__name__})"
                    )
                entry.parts.append(text)
            case events.InputJsonDelta(partial_json=fragment):
                self._json_buffers.setdefault(index, []).append(fragment)
            case events.ThinkingDelta() | events.SignatureDelta():
                pass
            case _:
                raise errors.ProtocolError(f"Unknown delta: {delta!r}")

    def _close_block(self, index: int) -> None:
        fragments = self._json_buffers.pop(index, None)
        if fragments is None:
            return

        raw = "".join(fragments)
        entry = self._entries.get(index)
        if not isinstance(entry, _ToolUseEntry):
            raise errors.ProtocolError(f"Tool input JSON for non-tool block {index}")
        try:
            entry.input = _json.loads(raw)
        except _json.JSONDecodeError as e:
            raise errors.ToolInputParseError(index, raw, str(e)) from e

    def finish(self) -> api_types.ModelResponse:
        """
        Build the response from everything fed so far.

        Returns:
            The response with content blocks ordered by index.

        Raises:
            IncompleteStreamError: If MessageStop was never fed.
        """
        if not self._complete:
            raise errors.IncompleteStreamError()

        content: list[api_types.ContentBlock] = [
            entry.to_block()
            for _, entry in sorted(self._entries.items())
            if not isinstance(entry, _ThinkingEntry)
        ]
        return api_types.ModelResponse(
            id=self._id,
            model=self._model,
            role=self._role,
            content=content,
            stop_reason=self._stop_reason,
            stop_sequence=self._stop_sequence,
            usage=self._usage,
        )


EventSource = _typing.AsyncIterable[events.ProtocolEvent] | _typing.Iterable[events.ProtocolEvent]


async def aggregate_stream(
    source: EventSource,
    callbacks: callbacks_module.ConversationCallbacks | None = None,
) -> api_types.ModelResponse:
    """
    Consume an event source and return the aggregated response.

    Consumption stops at MessageStop; anything after it is left unread. The
    source is closed on every exit path, including errors and cancellation.

    Args:
        source: Async or sync iterable of protocol events.
        callbacks: Observer notified of every event and every text delta.

    Returns:
        The complete ModelResponse.

    Raises:
        ProtocolError: (or a subclass) if the stream is malformed, reports an
            error, or ends without MessageStop.
    """
    observer = callbacks or callbacks_module.NULL_CALLBACKS
    aggregator = StreamAggregator()
    await observer.on_stream_start()

    try:
        if isinstance(source, _typing.AsyncIterable):
            async for event in source:
                if await _consume(aggregator, event, observer):
                    break
        else:
            for event in source:
                if await _consume(aggregator, event, observer):
                    break
    finally:
        await _close_source(source)

    response = aggregator.finish()
    _logger.debug(
        "Aggregated response %s: %d block(s), stop_reason=%s",
        response.id,
        len(response.content),
        response.stop_reason,
    )
    await observer.on_stream_end(response)
    return response


async def _consume(
    aggregator: StreamAggregator,
    event: events.ProtocolEvent,
    observer: callbacks_module.ConversationCallbacks,
) -> bool:
    await observer.on_event(event)
    if isinstance(event, events.ContentBlockDelta) and isinstance(event.delta, events.TextDelta):
        await observer.on_text_delta(event.delta.text)
    return aggregator.feed(event)


async def _close_source(source: EventSource) -> None:
    aclose = getattr(source, "aclose", None)
    if aclose is not None:
        await aclose()
        return
    close = getattr(source, "close", None)
    if close is not None:
        close()
