"""
Tool dispatch for the ExecuteTools step.

Takes the tool request from the last assistant message, runs it through the
registry, and folds the outcome back into the conversation as a tool result.
Only the first tool-use block of a turn is executed.
"""

from __future__ import annotations

import logging as _logging
import time as _time

import pydantic as _pydantic

import skald.api.types as api_types
import skald.constants as _constants
import skald.core.callbacks as callbacks_module
import skald.core.state as state_module
import skald.errors as errors
import skald.logging as skald_logging
import skald.tools.base as tools_base
import skald.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)


def format_tool_result_content(
    outcome: tools_base.ToolOutcome,
    max_chars: int = _constants.DEFAULT_TOOL_RESULT_MAX_CHARS,
) -> str:
    """
    Text of a tool result as sent back to the model.

    Error outcomes get the error prefix. Content longer than max_chars is
    truncated with a marker so a single tool cannot flood the context.
    """
    content = outcome.content
    if outcome.is_error:
        content = _constants.TOOL_ERROR_PREFIX + content
    if len(content) > max_chars:
        content = (
            content[:max_chars]
            + f"\n\n... [TRUNCATED: output exceeded {max_chars:,} characters] ..."
        )
    return content


class ToolDispatcher:
    """
    Executes the tool requested by the last assistant message.

    Tool metrics are always collected during execution.
    """

    def __init__(
        self,
        tool_registry: tools_registry.ToolRegistry | None,
        *,
        tool_result_max_chars: int = _constants.DEFAULT_TOOL_RESULT_MAX_CHARS,
        callbacks: callbacks_module.ConversationCallbacks | None = None,
        conversation_logger: skald_logging.ConversationLogger | None = None,
        metrics: tools_base.MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            tool_registry: Registry of available tools, or None for no tools.
            tool_result_max_chars: Truncation limit for result text.
            callbacks: Observer for tool calls and results.
            conversation_logger: Optional JSONL conversation log.
            metrics: Collector to record into (a fresh one by default).
        """
        self._registry = tool_registry
        self._max_chars = tool_result_max_chars
        self._callbacks = callbacks or callbacks_module.NULL_CALLBACKS
        self._logger = conversation_logger
        self._metrics = metrics if metrics is not None else tools_base.MetricsCollector()

    @property
    def metrics(self) -> tools_base.MetricsCollector:
        """Get the metrics collector for this dispatcher."""
        return self._metrics

    def select_tool_use(self, state: state_module.ConversationState) -> api_types.ToolUseBlock:
        """
        Pick the tool request to execute from the last message.

        Raises:
            InvalidStateTransitionError: If the history is empty or the last
                message is not from the assistant.
            NoToolUseFoundError: If the last message requests no tool.
        """
        last = state.last_message()
        if last is None:
            raise errors.InvalidStateTransitionError("no messages to execute tools for")
        if last.role is not api_types.Role.ASSISTANT:
            raise errors.InvalidStateTransitionError(
                f"last message is from {last.role.value}, expected assistant"
            )

        tool_uses = last.tool_uses()
        if not tool_uses:
            raise errors.NoToolUseFoundError()
        if len(tool_uses) > 1:
            ignored = ", ".join(t.name for t in tool_uses[1:])
            _logger.warning(
                "Assistant requested %d tools; executing only %s, ignoring: %s",
                len(tool_uses),
                tool_uses[0].name,
                ignored,
            )
        return tool_uses[0]

    async def dispatch(self, state: state_module.ConversationState) -> api_types.ToolResultBlock:
        """
        Execute the first requested tool and append its result.

        State is only modified once the result block is complete; on any
        error the conversation is left unchanged.

        Args:
            state: The run's conversation state.

        Returns:
            The ToolResultBlock appended to the history.

        Raises:
            InvalidStateTransitionError: Last message missing or not assistant.
            NoToolUseFoundError: No tool-use block to execute.
            ToolNotFoundError: No registry, or the tool is not registered.
            InvalidToolInputError: Input does not fit the tool's input model.
            ToolNotImplementedError: The tool raised NotImplementedError.
            ToolExecutionFailedError: The tool raised any other exception.
        """
        tool_use = self.select_tool_use(state)

        if self._logger:
            self._logger.log_tool_call(
                tool_name=tool_use.name,
                tool_input=tool_use.input,
                tool_id=tool_use.id,
            )

        tool = self._lookup(tool_use.name)

        try:
            tool_input = tool.parse_input(tool_use.input)
        except _pydantic.ValidationError as e:
            messages = [
                f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            ]
            raise errors.InvalidToolInputError(tool_use.name, messages) from e

        await self._callbacks.on_tool_call(tool_use)
        outcome = await self._execute(tool, tool_use, tool_input)

        result = api_types.ToolResultBlock(
            tool_use_id=tool_use.id,
            content=format_tool_result_content(outcome, self._max_chars),
            is_error=outcome.is_error,
        )

        await self._callbacks.on_tool_result(tool_use, result)

        state.append(api_types.Message(role=api_types.Role.USER, content=[result]))
        state.tool_outputs[tool_use.id] = outcome.content
        return result

    def _lookup(self, name: str) -> tools_base.Tool:
        if self._registry is None:
            raise errors.ToolNotFoundError(None)
        tool = self._registry.get(name)
        if tool is None:
            raise errors.ToolNotFoundError(name, available=self._registry.list_names())
        return tool

    async def _execute(
        self,
        tool: tools_base.Tool,
        tool_use: api_types.ToolUseBlock,
        tool_input: _pydantic.BaseModel,
    ) -> tools_base.ToolOutcome:
        start_time = _time.perf_counter()
        try:
            outcome = await tool.execute(tool_input)
        except NotImplementedError as e:
            self._record_failure(tool_use, start_time, f"not implemented: {e}")
            raise errors.ToolNotImplementedError(tool_use.name) from e
        except Exception as e:
            self._record_failure(tool_use, start_time, str(e))
            raise errors.ToolExecutionFailedError(tool_use.name, str(e)) from e

        duration_ms = (_time.perf_counter() - start_time) * 1000
        self._metrics.record(tool_use.name, not outcome.is_error, duration_ms)
        if self._logger:
            self._logger.log_tool_result(
                tool_name=tool_use.name,
                success=not outcome.is_error,
                output=None if outcome.is_error else outcome.content,
                error=outcome.content if outcome.is_error else None,
                tool_id=tool_use.id,
                duration_ms=duration_ms,
            )
        return outcome

    def _record_failure(
        self,
        tool_use: api_types.ToolUseBlock,
        start_time: float,
        reason: str,
    ) -> None:
        duration_ms = (_time.perf_counter() - start_time) * 1000
        self._metrics.record(tool_use.name, False, duration_ms)
        if self._logger:
            self._logger.log_tool_result(
                tool_name=tool_use.name,
                success=False,
                error=reason,
                tool_id=tool_use.id,
                duration_ms=duration_ms,
            )
