"""
Mutable state of one conversation run.

A ConversationState is owned by exactly one state machine for the whole run.
Nodes build their changes fully before calling append(), so a failing step
leaves the state exactly as it found it.
"""

from __future__ import annotations

import dataclasses as _dataclasses

import skald.api.types as api_types


@_dataclasses.dataclass
class ConversationState:
    """
    History and bookkeeping for one run.

    Attributes:
        history: Messages exchanged so far, oldest first. Append-only.
        pending_user_prompt: The prompt Start turns into the first message.
        tool_outputs: Raw (untruncated) tool output text keyed by tool_use_id.
    """

    pending_user_prompt: str
    history: list[api_types.Message] = _dataclasses.field(default_factory=list)
    tool_outputs: dict[str, str] = _dataclasses.field(default_factory=dict)

    def last_message(self) -> api_types.Message | None:
        """The most recent message, or None for an empty history."""
        return self.history[-1] if self.history else None

    def append(self, message: api_types.Message) -> None:
        self.history.append(message)

    def snapshot(self) -> list[api_types.Message]:
        """Shallow copy of the history, safe to hand to a provider."""
        return list(self.history)
