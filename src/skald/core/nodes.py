"""
Nodes of the conversation state machine.

Each NodeKind maps to an async step function through NODE_STEPS. A step
receives the run's state and its shared dependencies, performs its work,
and returns the Transition it wants. Steps build their changes fully before
committing them, so a failing step leaves the state untouched.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import logging as _logging
import typing as _typing

import skald.api.base as api_base
import skald.api.types as api_types
import skald.constants as _constants
import skald.core.aggregator as aggregator
import skald.core.callbacks as callbacks_module
import skald.core.dispatcher as dispatcher
import skald.core.state as state_module
import skald.errors as errors
import skald.logging as skald_logging
import skald.tools.base as tools_base
import skald.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)


class NodeKind(_enum.Enum):
    """The nodes a conversation run moves through."""

    START = "start"
    REQUEST_MODEL = "request_model"
    EXECUTE_TOOLS = "execute_tools"
    END = "end"


class Transition(_enum.Enum):
    """What a node asks the machine to do next."""

    TO_REQUEST_MODEL = "to_request_model"
    TO_EXECUTE_TOOLS = "to_execute_tools"
    TO_END = "to_end"
    TERMINAL = "terminal"


@_dataclasses.dataclass
class Deps:
    """
    Collaborators shared by every step of a run.

    Deps is read-only for the steps; one instance may back many runs.
    """

    provider: api_base.ModelProvider
    tool_registry: tools_registry.ToolRegistry | None = None
    system_prompt: str = ""
    max_tokens: int = _constants.DEFAULT_MAX_TOKENS
    temperature: float | None = None
    tool_result_max_chars: int = _constants.DEFAULT_TOOL_RESULT_MAX_CHARS
    callbacks: callbacks_module.ConversationCallbacks = _dataclasses.field(
        default_factory=callbacks_module.ConversationCallbacks
    )
    conversation_logger: skald_logging.ConversationLogger | None = None
    metrics: tools_base.MetricsCollector = _dataclasses.field(
        default_factory=tools_base.MetricsCollector
    )

    def tool_definitions(self) -> list[api_types.ToolDefinition]:
        """Definitions of the registered tools (empty without a registry)."""
        if self.tool_registry is None:
            return []
        return self.tool_registry.to_definitions()

    def create_dispatcher(self) -> dispatcher.ToolDispatcher:
        return dispatcher.ToolDispatcher(
            self.tool_registry,
            tool_result_max_chars=self.tool_result_max_chars,
            callbacks=self.callbacks,
            conversation_logger=self.conversation_logger,
            metrics=self.metrics,
        )


Step = _typing.Callable[[state_module.ConversationState, Deps], _typing.Awaitable[Transition]]


async def start_step(state: state_module.ConversationState, deps: Deps) -> Transition:
    """Seed the conversation with the user's prompt."""
    message = api_types.Message.user_text(state.pending_user_prompt)
    state.append(message)
    if deps.conversation_logger:
        deps.conversation_logger.log_user_message(state.pending_user_prompt)
    return Transition.TO_REQUEST_MODEL


async def request_model_step(state: state_module.ConversationState, deps: Deps) -> Transition:
    """
    Submit the conversation and fold the model's response into it.

    The response is appended as an assistant message before routing, so a
    MAX_TOKENS response is kept in the history even though the run fails.

    Raises:
        MaxTokensExceededError: If the model hit the response token limit.
        ProtocolError: If the event stream could not be aggregated.
    """
    tools = deps.tool_definitions()
    source = deps.provider.stream(
        state.snapshot(),
        system=deps.system_prompt or None,
        tools=tools or None,
        max_tokens=deps.max_tokens,
        temperature=deps.temperature,
    )
    response = await aggregator.aggregate_stream(source, deps.callbacks)

    message = response.to_message()
    state.append(message)
    if deps.conversation_logger:
        deps.conversation_logger.log_assistant_message(message, response.stop_reason)
        deps.conversation_logger.log_usage(response.usage)

    match response.stop_reason:
        case api_types.StopReason.TOOL_USE:
            return Transition.TO_EXECUTE_TOOLS
        case api_types.StopReason.MAX_TOKENS:
            raise errors.MaxTokensExceededError()
        case api_types.StopReason.END_TURN | api_types.StopReason.STOP_SEQUENCE | None:
            return Transition.TO_END
    raise errors.ProtocolError(f"Unhandled stop reason: {response.stop_reason!r}")


async def execute_tools_step(state: state_module.ConversationState, deps: Deps) -> Transition:
    """Run the requested tool and loop back to the model."""
    result = await deps.create_dispatcher().dispatch(state)
    _logger.debug("Tool result for %s (is_error=%s)", result.tool_use_id, result.is_error)
    return Transition.TO_REQUEST_MODEL


async def end_step(state: state_module.ConversationState, deps: Deps) -> Transition:
    """Terminal node. Never touches the state."""
    return Transition.TERMINAL


NODE_STEPS: dict[NodeKind, Step] = {
    NodeKind.START: start_step,
    NodeKind.REQUEST_MODEL: request_model_step,
    NodeKind.EXECUTE_TOOLS: execute_tools_step,
    NodeKind.END: end_step,
}
