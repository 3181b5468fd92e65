"""
Conversation state machine.

Drives one run from the user's prompt to the model's final answer:

    START -> REQUEST_MODEL -> (EXECUTE_TOOLS -> REQUEST_MODEL)* -> END

Callers advance the machine one node at a time, or iterate it, or simply
run it to completion. Any error ends the run; the machine then refuses to
execute further nodes.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import skald.api.base as api_base
import skald.api.types as api_types
import skald.config.settings as settings_module
import skald.constants as _constants
import skald.core.callbacks as callbacks_module
import skald.core.nodes as nodes
import skald.core.state as state_module
import skald.errors as errors
import skald.logging as skald_logging
import skald.tools.registry as tools_registry

_logger = _logging.getLogger(__name__)

_TRANSITIONS: dict[tuple[nodes.NodeKind, nodes.Transition], nodes.NodeKind] = {
    (nodes.NodeKind.START, nodes.Transition.TO_REQUEST_MODEL): nodes.NodeKind.REQUEST_MODEL,
    (nodes.NodeKind.REQUEST_MODEL, nodes.Transition.TO_EXECUTE_TOOLS): nodes.NodeKind.EXECUTE_TOOLS,
    (nodes.NodeKind.REQUEST_MODEL, nodes.Transition.TO_END): nodes.NodeKind.END,
    (nodes.NodeKind.EXECUTE_TOOLS, nodes.Transition.TO_REQUEST_MODEL): nodes.NodeKind.REQUEST_MODEL,
}
"""Allowed (node, transition) pairs. END/TERMINAL is handled separately."""


class ConversationStateMachine:
    """
    Node/transition engine for one conversation run.

    The machine owns its ConversationState for the whole run. After each
    step, current_node and state can be inspected; once finished, either
    result (on success) or error (on failure) is set.

    Usage:
        machine = ConversationStateMachine("What is in README?", deps)
        async for node in machine:
            print(node)
        print(machine.result)
    """

    def __init__(
        self,
        prompt: str,
        deps: nodes.Deps,
        *,
        max_steps: int = _constants.DEFAULT_MAX_STEPS,
        node_steps: _typing.Mapping[nodes.NodeKind, nodes.Step] | None = None,
    ) -> None:
        """
        Initialize a machine at START.

        Args:
            prompt: The user prompt that starts the run.
            deps: Shared collaborators (provider, tools, limits, observers).
            max_steps: Node executions allowed before the run is aborted.
            node_steps: Step table override (defaults to nodes.NODE_STEPS).
        """
        self._state = state_module.ConversationState(pending_user_prompt=prompt)
        self._deps = deps
        self._max_steps = max_steps
        self._node_steps = node_steps if node_steps is not None else nodes.NODE_STEPS
        self._current = nodes.NodeKind.START
        self._finished = False
        self._error: errors.AgentError | None = None
        self._steps_taken = 0

    @property
    def current_node(self) -> nodes.NodeKind:
        return self._current

    @property
    def state(self) -> state_module.ConversationState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def error(self) -> errors.AgentError | None:
        """The error that ended the run, if it failed."""
        return self._error

    @property
    def steps_taken(self) -> int:
        return self._steps_taken

    @property
    def result(self) -> str | None:
        """
        Final answer of a successful run.

        The first text block of the last assistant message, or None if the
        run has not reached END, failed, or the answer has no text.
        """
        if not self._finished or self._error is not None:
            return None
        for message in reversed(self._state.history):
            if message.role is api_types.Role.ASSISTANT:
                return message.first_text()
        return None

    async def advance(self) -> nodes.NodeKind | None:
        """
        Execute exactly one node.

        Returns:
            The node that is current after the step (END once the End node
            has run), or None if the machine had already finished.

        Raises:
            AgentError: Whatever the step raised; the machine is finished.
            OtherError: Wrapping any non-AgentError exception from the step.
        """
        if self._finished:
            return None

        node = self._current
        try:
            # The End node is not counted toward max_steps
            if node is not nodes.NodeKind.END:
                if self._steps_taken >= self._max_steps:
                    raise errors.OtherError(f"Exceeded maximum of {self._max_steps} steps")
                self._steps_taken += 1
            _logger.debug("Step %d: running %s", self._steps_taken, node.value)
            transition = await self._node_steps[node](self._state, self._deps)
            self._current = self._resolve(node, transition)
        except errors.AgentError as e:
            self._fail(node, e)
            raise
        except Exception as e:
            error = errors.OtherError(f"Unexpected error in {node.value} step", cause=e)
            self._fail(node, error)
            raise error from e

        return self._current

    def _resolve(self, node: nodes.NodeKind, transition: nodes.Transition) -> nodes.NodeKind:
        if node is nodes.NodeKind.END and transition is nodes.Transition.TERMINAL:
            self._finished = True
            _logger.debug("Run finished after %d steps", self._steps_taken)
            return nodes.NodeKind.END

        next_node = _TRANSITIONS.get((node, transition))
        if next_node is None:
            raise errors.InvalidStateTransitionError(f"{node.value} cannot {transition.value}")
        return next_node

    def _fail(self, node: nodes.NodeKind, error: errors.AgentError) -> None:
        self._finished = True
        self._error = error
        _logger.debug("Run failed in %s: %s", node.value, error)
        if self._deps.conversation_logger:
            self._deps.conversation_logger.log_error(
                error.message,
                context=node.value,
                kind=error.kind,
            )

    async def run_to_completion(self) -> str | None:
        """
        Advance until finished.

        Returns:
            The run's result (see result).

        Raises:
            AgentError: If any step fails.
        """
        while await self.advance() is not None:
            pass
        return self.result

    def __aiter__(self) -> ConversationStateMachine:
        return self

    async def __anext__(self) -> nodes.NodeKind:
        node = await self.advance()
        if node is None:
            raise StopAsyncIteration
        return node

    def __repr__(self) -> str:
        return (
            f"<ConversationStateMachine node={self._current.value} "
            f"finished={self._finished} steps={self._steps_taken}>"
        )


class ConversationRunner:
    """
    Creates and drives one state machine per user prompt.

    The runner holds the Deps shared by all of its runs, so tool metrics and
    the conversation log span every prompt it handles.
    """

    def __init__(
        self,
        deps: nodes.Deps,
        *,
        max_steps: int = _constants.DEFAULT_MAX_STEPS,
    ) -> None:
        self._deps = deps
        self._max_steps = max_steps

    @classmethod
    def from_settings(
        cls,
        provider: api_base.ModelProvider,
        tool_registry: tools_registry.ToolRegistry | None = None,
        settings: settings_module.Settings | None = None,
        *,
        callbacks: callbacks_module.ConversationCallbacks | None = None,
        conversation_logger: skald_logging.ConversationLogger | None = None,
    ) -> ConversationRunner:
        """
        Build a runner whose limits and log come from Settings.

        Args:
            provider: The model provider to submit conversations to.
            tool_registry: Tools offered to the model, if any.
            settings: Configuration (defaults to Settings()).
            callbacks: Observer for streaming text and tool activity.
            conversation_logger: Log to use instead of one built from settings.
        """
        if settings is None:
            settings = settings_module.Settings()
        if conversation_logger is None:
            conversation_logger = skald_logging.ConversationLogger.from_settings(
                settings, provider=provider.name
            )

        behavior = settings.behavior
        deps = nodes.Deps(
            provider=provider,
            tool_registry=tool_registry,
            system_prompt=behavior.system_prompt,
            max_tokens=behavior.max_tokens,
            temperature=behavior.temperature,
            tool_result_max_chars=behavior.tool_result_max_chars,
            callbacks=callbacks or callbacks_module.ConversationCallbacks(),
            conversation_logger=conversation_logger,
        )
        if conversation_logger.enabled and behavior.system_prompt:
            conversation_logger.log_system_prompt(behavior.system_prompt)
        return cls(deps, max_steps=behavior.max_steps)

    @property
    def deps(self) -> nodes.Deps:
        return self._deps

    def create_machine(self, prompt: str) -> ConversationStateMachine:
        """Create a fresh machine for one prompt."""
        return ConversationStateMachine(prompt, self._deps, max_steps=self._max_steps)

    async def run(self, prompt: str) -> str | None:
        """
        Run one prompt to completion.

        Returns:
            The final answer text, or None if the answer has no text.

        Raises:
            AgentError: If the run fails.
        """
        return await self.create_machine(prompt).run_to_completion()

    def close(self) -> None:
        """Record tool metrics and close the conversation log."""
        conversation_logger = self._deps.conversation_logger
        if conversation_logger is None:
            return
        conversation_logger.log_tool_metrics(self._deps.metrics.summary())
        conversation_logger.close()
