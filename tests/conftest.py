"""
Shared pytest fixtures for Skald tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import typing as _typing
import unittest.mock as _mock

import pydantic as _pydantic
import pytest as _pytest

import skald.api.base as api_base
import skald.api.events as events
import skald.api.types as api_types
import skald.config as config
import skald.core.callbacks as callbacks
import skald.tools.base as tools_base
import skald.tools.registry as tools_registry

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "SKALD_ENV_FILE",
    "SKALD_MODELS__DEFAULT",
    "SKALD_BEHAVIOR__MAX_TOKENS",
    "SKALD_BEHAVIOR__TEMPERATURE",
    "SKALD_BEHAVIOR__SYSTEM_PROMPT",
    "SKALD_BEHAVIOR__MAX_STEPS",
    "SKALD_BEHAVIOR__TOOL_RESULT_MAX_CHARS",
    "SKALD_LOGGING__ENABLED",
    "SKALD_LOGGING__DIR",
    "SKALD_LOGGING__PRIVATE",
    "SKALD_LOGGING__FILE",
]


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with test-related keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {k: v for k, v in _os.environ.items() if k not in ENV_KEYS_TO_CLEAR}


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]):
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def clean_settings(isolated_env) -> config.Settings:
    """Settings instance isolated from environment and .env file."""
    with isolated_env:
        return config.Settings.construct_without_dotenv()


# =============================================================================
# Event scripts
# =============================================================================


class EventScript:
    """Builders for the protocol event sequences of common responses."""

    @staticmethod
    def text_turn(
        text: str,
        stop_reason: api_types.StopReason | None = api_types.StopReason.END_TURN,
        message_id: str = "msg-1",
    ) -> list[events.ProtocolEvent]:
        """A response with one text block streamed in two deltas."""
        half = len(text) // 2
        return [
            events.MessageStart(id=message_id, model="mock-model"),
            events.ContentBlockStart(index=0, block=events.TextStart()),
            events.ContentBlockDelta(index=0, delta=events.TextDelta(text=text[:half])),
            events.ContentBlockDelta(index=0, delta=events.TextDelta(text=text[half:])),
            events.ContentBlockStop(index=0),
            events.MessageDelta(stop_reason=stop_reason),
            events.MessageStop(),
        ]

    @staticmethod
    def tool_turn(
        name: str,
        input_json: str,
        tool_id: str = "toolu-1",
        text: str | None = None,
        message_id: str = "msg-tool",
    ) -> list[events.ProtocolEvent]:
        """A response requesting one tool, optionally preceded by text."""
        result: list[events.ProtocolEvent] = [
            events.MessageStart(id=message_id, model="mock-model"),
        ]
        index = 0
        if text is not None:
            result += [
                events.ContentBlockStart(index=0, block=events.TextStart()),
                events.ContentBlockDelta(index=0, delta=events.TextDelta(text=text)),
                events.ContentBlockStop(index=0),
            ]
            index = 1
        result += [
            events.ContentBlockStart(index=index, block=events.ToolUseStart(id=tool_id, name=name)),
            events.ContentBlockDelta(
                index=index, delta=events.InputJsonDelta(partial_json=input_json)
            ),
            events.ContentBlockStop(index=index),
            events.MessageDelta(stop_reason=api_types.StopReason.TOOL_USE),
            events.MessageStop(),
        ]
        return result


@_pytest.fixture
def event_script() -> type[EventScript]:
    """Builders for scripted event sequences."""
    return EventScript


# =============================================================================
# Scripted provider
# =============================================================================


class ScriptedProvider(api_base.ModelProvider):
    """
    Provider that replays one scripted event sequence per submit.

    Records the history it was given on each call so tests can check what
    the model saw. Raises AssertionError when the script runs out.
    """

    def __init__(
        self,
        script: list[list[events.ProtocolEvent]],
        name: str = "mock",
        model: str = "mock-model",
    ) -> None:
        self._script = list(script)
        self._name = name
        self._model = model
        self.calls: list[dict[str, _typing.Any]] = []
        self.closed_streams = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def model(self) -> str:
        return self._model

    def stream(
        self,
        messages: list[api_types.Message],
        *,
        system: str | None = None,
        tools: list[api_types.ToolDefinition] | None = None,
        max_tokens: int = 8192,
        temperature: float | None = None,
    ) -> _typing.AsyncIterator[events.ProtocolEvent]:
        if not self._script:
            raise AssertionError("ScriptedProvider script exhausted")
        self.calls.append(
            {
                "messages": list(messages),
                "system": system,
                "tools": tools,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        return self._replay(self._script.pop(0))

    async def _replay(
        self, turn: list[events.ProtocolEvent]
    ) -> _typing.AsyncIterator[events.ProtocolEvent]:
        try:
            for event in turn:
                yield event
        finally:
            self.closed_streams += 1


@_pytest.fixture
def scripted_provider_factory() -> _typing.Callable[..., ScriptedProvider]:
    """Factory for creating scripted providers."""

    def _create(
        script: list[list[events.ProtocolEvent]],
        name: str = "mock",
        model: str = "mock-model",
    ) -> ScriptedProvider:
        return ScriptedProvider(script=script, name=name, model=model)

    return _create


# =============================================================================
# Tools and observers
# =============================================================================


class EchoInput(_pydantic.BaseModel):
    text: str


class EchoTool(tools_base.Tool):
    """Echoes its input text back. Configurable failure modes."""

    def __init__(
        self,
        name: str = "echo",
        outcome: tools_base.ToolOutcome | None = None,
        execute_exception: BaseException | None = None,
    ) -> None:
        self._name = name
        self._outcome = outcome
        self._execute_exception = execute_exception
        self.calls: list[EchoInput] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return "Echo the given text back"

    @property
    def input_model(self) -> type[_pydantic.BaseModel]:
        return EchoInput

    async def execute(self, input: EchoInput) -> tools_base.ToolOutcome:
        self.calls.append(input)
        if self._execute_exception is not None:
            raise self._execute_exception
        if self._outcome is not None:
            return self._outcome
        return tools_base.ToolOutcome.ok(input.text)


@_pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@_pytest.fixture
def echo_tool_factory() -> _typing.Callable[..., EchoTool]:
    """Factory for echo tools with specific outcomes or exceptions."""
    return EchoTool


@_pytest.fixture
def echo_registry(echo_tool: EchoTool) -> tools_registry.ToolRegistry:
    """Registry holding the echo_tool fixture."""
    return tools_registry.ToolRegistry([echo_tool])


class RecordingCallbacks(callbacks.ConversationCallbacks):
    """Callbacks that record everything they are told."""

    def __init__(self) -> None:
        self.events: list[events.ProtocolEvent] = []
        self.text: list[str] = []
        self.stream_starts = 0
        self.responses: list[api_types.ModelResponse] = []
        self.tool_calls: list[api_types.ToolUseBlock] = []
        self.tool_results: list[api_types.ToolResultBlock] = []

    async def on_stream_start(self) -> None:
        self.stream_starts += 1

    async def on_event(self, event: events.ProtocolEvent) -> None:
        self.events.append(event)

    async def on_text_delta(self, text: str) -> None:
        self.text.append(text)

    async def on_stream_end(self, response: api_types.ModelResponse) -> None:
        self.responses.append(response)

    async def on_tool_call(self, tool_use: api_types.ToolUseBlock) -> None:
        self.tool_calls.append(tool_use)

    async def on_tool_result(
        self,
        tool_use: api_types.ToolUseBlock,  # noqa: ARG002
        result: api_types.ToolResultBlock,
    ) -> None:
        self.tool_results.append(result)


@_pytest.fixture
def recording_callbacks() -> RecordingCallbacks:
    return RecordingCallbacks()
