"""
Observer hooks for conversation runs.

Different front ends (terminal, JSON, tests) subclass ConversationCallbacks
to render streaming text and tool activity. Every hook is a no-op by
default, so subclasses only override what they display.
"""

from __future__ import annotations

import skald.api.events as events
import skald.api.types as api_types


class ConversationCallbacks:
    """
    Base class for run observers.

    Hooks are awaited inline by the run, in event order. A hook that raises
    aborts the current step like any other failure.
    """

    async def on_stream_start(self) -> None:
        """Called before the first event of a model response is consumed."""

    async def on_event(self, event: events.ProtocolEvent) -> None:
        """Called for every protocol event, before it is aggregated."""

    async def on_text_delta(self, text: str) -> None:
        """Called with each piece of streamed assistant text.

        Args:
            text: The delta text, not the accumulated block.
        """

    async def on_stream_end(self, response: api_types.ModelResponse) -> None:
        """Called once a response has been fully aggregated."""

    async def on_tool_call(self, tool_use: api_types.ToolUseBlock) -> None:
        """Called before a requested tool is executed."""

    async def on_tool_result(
        self,
        tool_use: api_types.ToolUseBlock,
        result: api_types.ToolResultBlock,
    ) -> None:
        """Called after a tool result has been built.

        Args:
            tool_use: The request that was executed.
            result: The block appended to the conversation.
        """


NULL_CALLBACKS = ConversationCallbacks()
"""Shared no-op observer."""
