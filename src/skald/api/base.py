"""
Abstract base class for model providers.

A provider is the submit capability of a conversation run: it takes the
conversation so far and returns the model's response as a stream of protocol
events. Transport, authentication and wire serialization are the provider's
business; the conversation core only consumes the events.
"""

from __future__ import annotations

import abc as _abc
import typing as _typing

import skald.api.events as events
import skald.api.types as types
import skald.constants as _constants


class ModelProvider(_abc.ABC):
    """
    Abstract base for model providers.

    Implementations handle the specifics of each provider's API while
    presenting a unified streaming interface.
    """

    @property
    @_abc.abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'anthropic')."""
        ...

    @property
    @_abc.abstractmethod
    def model(self) -> str:
        """Current model being used."""
        ...

    @_abc.abstractmethod
    def stream(
        self,
        messages: list[types.Message],
        *,
        system: str | None = None,
        tools: list[types.ToolDefinition] | None = None,
        max_tokens: int = _constants.DEFAULT_MAX_TOKENS,
        temperature: float | None = None,
    ) -> _typing.AsyncIterator[events.ProtocolEvent]:
        """
        Submit the conversation and yield protocol events as they arrive.

        Note: This method is not async itself, but returns an async iterator.
        Implementations should use 'async def' which returns an async generator,
        so that closing the iterator releases the underlying connection.

        Args:
            messages: Conversation history, oldest first. Must not be mutated.
            system: Optional system prompt
            tools: Optional list of tools available to the model
            max_tokens: Maximum tokens in the response
            temperature: Optional sampling temperature

        Yields:
            Protocol events in arrival order, ending with MessageStop
        """
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}:{self.model}>"
