"""
Type definitions for model conversations.

These types provide a provider-agnostic data model for messages, content
blocks and complete model responses.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import typing as _typing

import skald.errors as errors


class Role(_enum.Enum):
    """Who authored a message."""

    USER = "user"
    ASSISTANT = "assistant"


class StopReason(_enum.Enum):
    """Why the model stopped producing output for a turn."""

    END_TURN = "end_turn"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"
    TOOL_USE = "tool_use"

    @classmethod
    def parse(cls, value: str | None) -> StopReason | None:
        """
        Parse a wire stop reason.

        Args:
            value: Stop reason string, or None when the model gave none.

        Returns:
            The matching StopReason, or None.

        Raises:
            ProtocolError: If the value is not a known stop reason.
        """
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            raise errors.ProtocolError(f"Unknown stop reason: {value!r}") from None


@_dataclasses.dataclass
class Usage:
    """Token usage information."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, int]:
        """Convert to JSON-serializable dict."""
        return _dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Usage:
        """Create from dictionary, defaulting missing counters to zero."""
        return cls(
            input_tokens=data.get("input_tokens") or 0,
            output_tokens=data.get("output_tokens") or 0,
            cache_creation_input_tokens=data.get("cache_creation_input_tokens") or 0,
            cache_read_input_tokens=data.get("cache_read_input_tokens") or 0,
        )


@_dataclasses.dataclass(frozen=True)
class TextBlock:
    """Plain text content."""

    text: str

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"type": "text", "text": self.text}


@_dataclasses.dataclass(frozen=True)
class ToolUseBlock:
    """A request from the model to run a tool."""

    id: str
    name: str
    input: _typing.Any

    def to_dict(self) -> dict[str, _typing.Any]:
        return {"type": "tool_use", "id": self.id, "name": self.name, "input": self.input}


@_dataclasses.dataclass(frozen=True)
class ToolResultBlock:
    """The outcome of a tool run, sent back to the model."""

    tool_use_id: str
    content: str
    is_error: bool = False

    def to_dict(self) -> dict[str, _typing.Any]:
        data: dict[str, _typing.Any] = {
            "type": "tool_result",
            "tool_use_id": self.tool_use_id,
            "content": self.content,
        }
        if self.is_error:
            data["is_error"] = True
        return data


ContentBlock = TextBlock | ToolUseBlock | ToolResultBlock
"""A content block within a message (text, tool use, or tool result)."""


def content_block_from_dict(data: dict[str, _typing.Any]) -> ContentBlock:
    """
    Decode a content block from its dict form.

    Raises:
        ProtocolError: If the block type is unknown or fields are missing.
    """
    block_type = data.get("type")
    try:
        match block_type:
            case "text":
                return TextBlock(text=data["text"])
            case "tool_use":
                return ToolUseBlock(id=data["id"], name=data["name"], input=data.get("input", {}))
            case "tool_result":
                return ToolResultBlock(
                    tool_use_id=data["tool_use_id"],
                    content=data["content"],
                    is_error=bool(data.get("is_error", False)),
                )
    except KeyError as e:
        raise errors.ProtocolError(f"Content block {block_type!r} is missing field {e}") from None
    raise errors.ProtocolError(f"Unknown content block type: {block_type!r}")


@_dataclasses.dataclass
class Message:
    """A message in the conversation."""

    role: Role
    content: list[ContentBlock] = _dataclasses.field(default_factory=list)

    @classmethod
    def user_text(cls, text: str) -> Message:
        """Create a user message holding a single text block."""
        return cls(role=Role.USER, content=[TextBlock(text=text)])

    def first_text(self) -> str | None:
        """Text of the first text block, or None if there is none."""
        for block in self.content:
            if isinstance(block, TextBlock):
                return block.text
        return None

    def tool_uses(self) -> list[ToolUseBlock]:
        """All tool use blocks, in content order."""
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {
            "role": self.role.value,
            "content": [block.to_dict() for block in self.content],
        }

    @classmethod
    def from_dict(cls, data: dict[str, _typing.Any]) -> Message:
        """Create from dictionary. A bare string content becomes one text block."""
        content = data.get("content", [])
        if isinstance(content, str):
            blocks: list[ContentBlock] = [TextBlock(text=content)]
        else:
            blocks = [content_block_from_dict(block) for block in content]
        return cls(role=Role(data["role"]), content=blocks)


@_dataclasses.dataclass
class ToolDefinition:
    """Tool definition handed to the model provider."""

    name: str
    description: str
    input_schema: dict[str, _typing.Any]

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@_dataclasses.dataclass
class ModelResponse:
    """One complete model response, reconstructed from a stream of events."""

    id: str
    model: str
    role: Role
    content: list[ContentBlock]
    stop_reason: StopReason | None
    stop_sequence: str | None = None
    usage: Usage = _dataclasses.field(default_factory=Usage)

    @property
    def has_tool_use(self) -> bool:
        return any(isinstance(block, ToolUseBlock) for block in self.content)

    def to_message(self) -> Message:
        """Convert to the assistant message appended to the conversation."""
        return Message(role=Role.ASSISTANT, content=list(self.content))
