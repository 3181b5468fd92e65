"""
Error taxonomy for conversation runs.

Every failure that can end a run is an AgentError subclass with a stable
``kind`` string, so callers can branch on the category and still show a
readable message. Errors are raised where they happen and propagate to the
caller of ConversationStateMachine.advance() unchanged.
"""

from __future__ import annotations

import typing as _typing


class AgentError(Exception):
    """Base class for all conversation run errors."""

    kind: str = "agent_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, _typing.Any]:
        """Convert to JSON-serializable dict."""
        return {"kind": self.kind, "message": self.message}


class MaxTokensExceededError(AgentError):
    """The model stopped because it hit the response token limit."""

    kind = "max_tokens_exceeded"

    def __init__(self, message: str = "Max tokens reached") -> None:
        super().__init__(message)


class ToolNotImplementedError(AgentError):
    """A registered tool has no working implementation."""

    kind = "tool_not_implemented"

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not implemented: {name}")
        self.name = name


class ToolNotFoundError(AgentError):
    """The requested tool is not available for this run."""

    kind = "tool_not_found"

    def __init__(self, name: str | None, *, available: list[str] | None = None) -> None:
        if name is None:
            message = "No tool registry configured"
        else:
            message = f"Unknown tool: {name}"
            if available:
                message += f" (available: {', '.join(available)})"
        super().__init__(message)
        self.name = name


class InvalidToolInputError(AgentError):
    """The model's tool input does not match the tool's input shape."""

    kind = "invalid_tool_input"

    def __init__(self, name: str, errors: list[str]) -> None:
        super().__init__(f"Invalid input for tool {name}: {'; '.join(errors)}")
        self.name = name
        self.errors = errors


class InvalidStateTransitionError(AgentError):
    """A node produced a transition the state machine does not allow."""

    kind = "invalid_state_transition"

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid state transition: {message}")


class NoToolUseFoundError(InvalidStateTransitionError):
    """ExecuteTools ran but the last assistant message requested no tool."""

    kind = "no_tool_use_found"

    def __init__(self) -> None:
        super().__init__("no tool use found in the last assistant message")


class ProtocolError(AgentError):
    """The event stream was malformed or ended abnormally."""

    kind = "protocol_error"


class IncompleteStreamError(ProtocolError):
    """The event source was exhausted before a message_stop event."""

    kind = "incomplete_stream"

    def __init__(self) -> None:
        super().__init__("Stream ended without message_stop")


class StreamAbortedError(ProtocolError):
    """The provider reported an error event mid-stream."""

    kind = "stream_error"

    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(f"Stream error ({error_type}): {message}")
        self.error_type = error_type
        self.error_message = message

    def to_dict(self) -> dict[str, _typing.Any]:
        data = super().to_dict()
        data["error_type"] = self.error_type
        return data


class ToolInputParseError(ProtocolError):
    """Buffered tool input JSON did not parse once its block closed."""

    kind = "tool_input_parse_error"

    def __init__(self, index: int, raw: str, reason: str) -> None:
        super().__init__(f"Failed to parse tool input JSON for block {index}: {reason}")
        self.index = index
        self.raw = raw


class ToolExecutionFailedError(AgentError):
    """A tool raised while executing."""

    kind = "tool_execution_failed"

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Tool {name} failed: {reason}")
        self.name = name


class OtherError(AgentError):
    """Any failure outside the taxonomy above (provider errors, step limits)."""

    kind = "other"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.cause = cause
