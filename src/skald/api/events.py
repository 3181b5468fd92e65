"""
Protocol event vocabulary for streamed model responses.

A streamed response arrives as an ordered sequence of these events. Each
content block is bracketed by ContentBlockStart / ContentBlockStop for its
index, with ContentBlockDelta events in between; blocks of different indices
may interleave. MessageStop ends the useful data of the stream.

Usage:
    event = event_from_dict(json.loads(sse_data))
    if isinstance(event, ContentBlockDelta):
        ...
"""

from __future__ import annotations

import dataclasses as _dataclasses
import typing as _typing

import skald.api.types as types
import skald.errors as errors

# =============================================================================
# Content block start payloads
# =============================================================================


@_dataclasses.dataclass(frozen=True)
class TextStart:
    """Opening payload of a text block."""

    text: str = ""


@_dataclasses.dataclass(frozen=True)
class ToolUseStart:
    """Opening payload of a tool use block. Input is usually empty here."""

    id: str
    name: str
    input: _typing.Any = _dataclasses.field(default_factory=dict)


@_dataclasses.dataclass(frozen=True)
class ThinkingStart:
    """Opening payload of a thinking block (never surfaced in responses)."""

    thinking: str = ""


BlockStart = TextStart | ToolUseStart | ThinkingStart

# =============================================================================
# Content block deltas
# =============================================================================


@_dataclasses.dataclass(frozen=True)
class TextDelta:
    text: str


@_dataclasses.dataclass(frozen=True)
class InputJsonDelta:
    """A fragment of tool input JSON. Not parseable on its own."""

    partial_json: str


@_dataclasses.dataclass(frozen=True)
class ThinkingDelta:
    thinking: str


@_dataclasses.dataclass(frozen=True)
class SignatureDelta:
    signature: str


Delta = TextDelta | InputJsonDelta | ThinkingDelta | SignatureDelta

# =============================================================================
# Events
# =============================================================================


@_dataclasses.dataclass(frozen=True)
class MessageStart:
    id: str
    model: str
    role: types.Role = types.Role.ASSISTANT
    usage: types.Usage | None = None


@_dataclasses.dataclass(frozen=True)
class ContentBlockStart:
    index: int
    block: BlockStart


@_dataclasses.dataclass(frozen=True)
class ContentBlockDelta:
    index: int
    delta: Delta


@_dataclasses.dataclass(frozen=True)
class ContentBlockStop:
    index: int


@_dataclasses.dataclass(frozen=True)
class MessageDelta:
    stop_reason: types.StopReason | None = None
    stop_sequence: str | None = None
    usage: types.Usage | None = None


@_dataclasses.dataclass(frozen=True)
class MessageStop:
    pass


@_dataclasses.dataclass(frozen=True)
class Ping:
    pass


@_dataclasses.dataclass(frozen=True)
class StreamError:
    """The provider reported a failure in the middle of the stream."""

    error_type: str
    message: str


ProtocolEvent = (
    MessageStart
    | ContentBlockStart
    | ContentBlockDelta
    | ContentBlockStop
    | MessageDelta
    | MessageStop
    | Ping
    | StreamError
)
"""One incremental unit of a streamed model response."""

# =============================================================================
# Decoding
# =============================================================================


def _decode_block_start(data: dict[str, _typing.Any]) -> BlockStart:
    block_type = data.get("type")
    match block_type:
        case "text":
            return TextStart(text=data.get("text", ""))
        case "tool_use":
            return ToolUseStart(id=data["id"], name=data["name"], input=data.get("input", {}))
        case "thinking":
            return ThinkingStart(thinking=data.get("thinking", ""))
    raise errors.ProtocolError(f"Unknown content block type: {block_type!r}")


def _decode_delta(data: dict[str, _typing.Any]) -> Delta:
    delta_type = data.get("type")
    match delta_type:
        case "text_delta":
            return TextDelta(text=data["text"])
        case "input_json_delta":
            return InputJsonDelta(partial_json=data["partial_json"])
        case "thinking_delta":
            return ThinkingDelta(thinking=data["thinking"])
        case "signature_delta":
            return SignatureDelta(signature=data["signature"])
    raise errors.ProtocolError(f"Unknown delta type: {delta_type!r}")


def _decode_usage(data: dict[str, _typing.Any] | None) -> types.Usage | None:
    return types.Usage.from_dict(data) if data else None


def event_from_dict(data: dict[str, _typing.Any]) -> ProtocolEvent:
    """
    Decode one JSON event payload into a protocol event.

    The payload shape is the one used by server-sent-event model streams,
    e.g. ``{"type": "content_block_delta", "index": 0,
    "delta": {"type": "text_delta", "text": "Hi"}}``.

    Args:
        data: The decoded JSON object for one event.

    Returns:
        The matching protocol event.

    Raises:
        ProtocolError: If the event type (or a nested block/delta type) is
            unknown, or a required field is missing.
    """
    event_type = data.get("type")
    try:
        match event_type:
            case "message_start":
                message = data["message"]
                return MessageStart(
                    id=message["id"],
                    model=message["model"],
                    role=types.Role(message.get("role", "assistant")),
                    usage=_decode_usage(message.get("usage")),
                )
            case "content_block_start":
                return ContentBlockStart(
                    index=data["index"],
                    block=_decode_block_start(data["content_block"]),
                )
            case "content_block_delta":
                return ContentBlockDelta(index=data["index"], delta=_decode_delta(data["delta"]))
            case "content_block_stop":
                return ContentBlockStop(index=data["index"])
            case "message_delta":
                delta = data.get("delta", {})
                return MessageDelta(
                    stop_reason=types.StopReason.parse(delta.get("stop_reason")),
                    stop_sequence=delta.get("stop_sequence"),
                    usage=_decode_usage(data.get("usage")),
                )
            case "message_stop":
                return MessageStop()
            case "ping":
                return Ping()
            case "error":
                error = data.get("error", {})
                return StreamError(
                    error_type=error.get("type", "unknown"),
                    message=error.get("message", ""),
                )
    except KeyError as e:
        raise errors.ProtocolError(f"Event {event_type!r} is missing field {e}") from None
    except ValueError as e:
        raise errors.ProtocolError(f"Malformed {event_type!r} event: {e}") from None
    raise errors.ProtocolError(f"Unknown event type: {event_type!r}")
