"""
Provider-facing API types for Skald.

Defines the conversation data model, the protocol event vocabulary of
streamed responses, and the ModelProvider interface that supplies them.
Concrete transports live outside this package.
"""

from skald.api.base import ModelProvider
from skald.api.events import (
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    InputJsonDelta,
    MessageDelta,
    MessageStart,
    MessageStop,
    Ping,
    ProtocolEvent,
    SignatureDelta,
    StreamError,
    TextDelta,
    TextStart,
    ThinkingDelta,
    ThinkingStart,
    ToolUseStart,
    event_from_dict,
)
from skald.api.types import (
    ContentBlock,
    Message,
    ModelResponse,
    Role,
    StopReason,
    TextBlock,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
    Usage,
    content_block_from_dict,
)

__all__ = [
    # Base class
    "ModelProvider",
    # Types
    "ContentBlock",
    "Message",
    "ModelResponse",
    "Role",
    "StopReason",
    "TextBlock",
    "ToolDefinition",
    "ToolResultBlock",
    "ToolUseBlock",
    "Usage",
    "content_block_from_dict",
    # Events
    "ContentBlockDelta",
    "ContentBlockStart",
    "ContentBlockStop",
    "InputJsonDelta",
    "MessageDelta",
    "MessageStart",
    "MessageStop",
    "Ping",
    "ProtocolEvent",
    "SignatureDelta",
    "StreamError",
    "TextDelta",
    "TextStart",
    "ThinkingDelta",
    "ThinkingStart",
    "ToolUseStart",
    "event_from_dict",
]
